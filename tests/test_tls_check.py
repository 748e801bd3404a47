import socket
import ssl
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from checkup.checks.results import CertProperties, Result
from checkup.checks.tls_check import TLSChecker, parse_cert_chain
from checkup.errors import ConfigurationError


def build_cert(
    expires_in: timedelta,
    dns_names: tuple[str, ...] = ("example.com", "www.example.com"),
    common_name: str = "example.com",
    serial: int | None = None,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test Issuing CA")]))
        .public_key(key.public_key())
        .serial_number(serial or x509.random_serial_number())
        .not_valid_before(now - timedelta(days=90))
        .not_valid_after(now + expires_in)
    )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]),
            critical=False,
        )
    return builder.sign(key, hashes.SHA256()), key


def make_cert(expires_in: timedelta, **kwargs) -> bytes:
    cert, _key = build_cert(expires_in, **kwargs)
    return cert.public_bytes(serialization.Encoding.DER)


def _props(not_after: datetime) -> CertProperties:
    return CertProperties(
        common_name="example.com",
        serial=1,
        not_before=not_after - timedelta(days=90),
        not_after=not_after,
        dns_names=("example.com",),
        issuer="Test Issuing CA",
    )


FETCH = "checkup.checks.tls_check.fetch_cert_chain"


class ParseCertChainTests(unittest.TestCase):
    def test_first_cert_with_dns_names_wins(self) -> None:
        no_san = make_cert(timedelta(days=50), dns_names=(), common_name="no-san")
        leaf = make_cert(timedelta(days=50), dns_names=("a.example.com",), common_name="a")
        other = make_cert(timedelta(days=50), dns_names=("b.example.com",), common_name="b")

        props = parse_cert_chain([no_san, leaf, other])

        self.assertIsNotNone(props)
        self.assertEqual(props.common_name, "a")
        self.assertEqual(props.dns_names, ("a.example.com",))
        self.assertEqual(props.issuer, "Test Issuing CA")
        self.assertLess(props.not_before, props.not_after)

    def test_no_dns_names_yields_nothing(self) -> None:
        self.assertIsNone(parse_cert_chain([make_cert(timedelta(days=5), dns_names=())]))
        self.assertIsNone(parse_cert_chain([]))

    def test_unparseable_entries_are_skipped(self) -> None:
        props = parse_cert_chain([b"not a certificate", make_cert(timedelta(days=5))])
        self.assertIsNotNone(props)

    def test_large_serial_is_not_truncated(self) -> None:
        serial = 2**150 + 987654321
        props = parse_cert_chain([make_cert(timedelta(days=5), serial=serial)])
        self.assertEqual(props.serial, serial)


class ConcludeTests(unittest.TestCase):
    def _conclude(self, days: int, threshold: int) -> Result:
        now = datetime(2026, 6, 1, tzinfo=timezone.utc)
        props = _props(now + timedelta(days=days, hours=12))
        base = Result(
            title="site", endpoint="example.com", type="tls", timestamp=0,
            down=True, context=props,
        )
        checker = TLSChecker(name="site", domain_name="example.com", threshold=threshold)
        return checker.conclude(props, base, now=now)

    def test_classification(self) -> None:
        cases = [
            (45, 30, "up"),
            (31, 30, "up"),
            (30, 30, "degraded"),
            (1, 30, "degraded"),
            (0, 30, "down"),
            (-3, 30, "down"),
            (1, 0, "up"),
            (0, 0, "down"),
            (-10, 0, "down"),
        ]
        for days, threshold, expected in cases:
            with self.subTest(days=days, threshold=threshold):
                result = self._conclude(days, threshold)
                self.assertEqual(result.status().value, expected)
                flags = [result.healthy, result.degraded, result.down]
                self.assertEqual(flags.count(True), 1)

    def test_threshold_zero_never_degrades(self) -> None:
        for days in range(-5, 60):
            with self.subTest(days=days):
                self.assertFalse(self._conclude(days, 0).degraded)

    def test_classification_is_monotonic(self) -> None:
        rank = {"up": 2, "degraded": 1, "down": 0}
        for threshold in (0, 7, 30):
            previous = None
            for days in range(60, -10, -1):
                current = rank[self._conclude(days, threshold).status().value]
                if previous is not None:
                    self.assertLessEqual(current, previous)
                previous = current


class TLSCheckerTests(unittest.TestCase):
    def test_expiring_certificate_is_degraded(self) -> None:
        chain = [make_cert(timedelta(days=10, hours=12))]
        checker = TLSChecker(
            name="Website", domain_name="example.com", threshold=30, attempts=1,
            tags={"team": "web"},
        )
        with patch(FETCH, return_value=chain) as fetch:
            result = checker.check()

        fetch.assert_called_once_with("example.com", 443, 10.0)
        self.assertTrue(result.degraded)
        self.assertFalse(result.healthy)
        self.assertFalse(result.down)
        self.assertEqual(result.notice, "")
        self.assertEqual(result.type, "tls")
        self.assertEqual(result.title, "Website")
        self.assertEqual(result.endpoint, "example.com")
        self.assertEqual(result.context.dns_names, ("example.com", "www.example.com"))
        self.assertEqual(result.tags, {"team": "web"})
        self.assertEqual(len(result.attempts), 1)
        self.assertIsNone(result.attempts[0].error)

    def test_valid_certificate_is_healthy_with_default_threshold(self) -> None:
        with patch(FETCH, return_value=[make_cert(timedelta(days=3, hours=12))]):
            result = TLSChecker(name="s", domain_name="example.com").check()
        self.assertTrue(result.healthy)

    def test_expired_certificate_is_down_without_notice(self) -> None:
        with patch(FETCH, return_value=[make_cert(timedelta(days=-4))]):
            result = TLSChecker(name="s", domain_name="example.com", threshold=14).check()
        self.assertTrue(result.down)
        self.assertEqual(result.notice, "")
        self.assertNotEqual(result.context.dns_names, ("N/A",))

    def test_unreachable_host_is_down_with_placeholder(self) -> None:
        checker = TLSChecker(name="s", domain_name="unreachable.invalid", attempts=3)
        with patch(FETCH, side_effect=OSError("connection refused")) as fetch:
            result = checker.check()

        self.assertEqual(fetch.call_count, 3)
        self.assertTrue(result.down)
        self.assertFalse(result.healthy or result.degraded)
        self.assertEqual(len(result.attempts), 3)
        for attempt in result.attempts:
            self.assertEqual(attempt.error, "connection refused")
        self.assertIn("connection refused", result.notice)
        self.assertEqual(result.context.dns_names, ("N/A",))
        self.assertEqual(result.context.serial, 0)
        self.assertEqual(result.context.issuer, "N/A")
        self.assertEqual(result.context.common_name, "unreachable.invalid")

    def test_attempts_continue_after_failures(self) -> None:
        chain = [make_cert(timedelta(days=90))]
        side_effects = [TimeoutError("timed out"), chain, chain]
        checker = TLSChecker(name="s", domain_name="example.com", port=8443, attempts=3)
        with patch(FETCH, side_effect=side_effects) as fetch:
            result = checker.check()

        self.assertEqual(fetch.call_count, 3)
        fetch.assert_called_with("example.com", 8443, 10.0)
        self.assertTrue(result.healthy)
        self.assertEqual([a.error for a in result.attempts], ["timed out", None, None])

    def test_first_non_empty_chain_is_used(self) -> None:
        first = [make_cert(timedelta(days=90), common_name="first")]
        second = [make_cert(timedelta(days=90), common_name="second")]
        with patch(FETCH, side_effect=[[], first, second]):
            result = TLSChecker(name="s", domain_name="example.com", attempts=3).check()
        self.assertEqual(result.context.common_name, "first")

    def test_chain_without_dns_names_is_down(self) -> None:
        with patch(FETCH, return_value=[make_cert(timedelta(days=90), dns_names=())]):
            result = TLSChecker(name="s", domain_name="example.com", attempts=2).check()
        self.assertTrue(result.down)
        self.assertEqual(len(result.attempts), 2)
        self.assertEqual(result.context.serial, 0)

    def test_attempts_below_one_run_once(self) -> None:
        with patch(FETCH, side_effect=OSError("refused")) as fetch:
            result = TLSChecker(name="s", domain_name="example.com", attempts=0).check()
        self.assertEqual(fetch.call_count, 1)
        self.assertEqual(len(result.attempts), 1)

    def test_configuration_errors_raise(self) -> None:
        bad = [
            TLSChecker(name="s", domain_name=""),
            TLSChecker(name="s", domain_name="example.com", port=70000),
            TLSChecker(name="s", domain_name="example.com", threshold=-1),
        ]
        for checker in bad:
            with self.subTest(checker=checker):
                with patch(FETCH) as fetch:
                    with self.assertRaises(ConfigurationError):
                        checker.check()
                fetch.assert_not_called()


class LocalTLSServer:
    """Serves one self-signed certificate on an ephemeral localhost port."""

    def __init__(self, cert: x509.Certificate, key: ec.EllipticCurvePrivateKey, workdir: str) -> None:
        cert_path = Path(workdir) / "cert.pem"
        key_path = Path(workdir) / "key.pem"
        cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
        self.ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.ctx.load_cert_chain(cert_path, key_path)

        self.sock = socket.create_server(("127.0.0.1", 0))
        self.sock.settimeout(0.2)
        self.port = self.sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> "LocalTLSServer":
        self._thread.start()
        return self

    def __exit__(self, *exc) -> None:
        self._stop.set()
        self._thread.join(timeout=5)
        self.sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(5)
            try:
                with self.ctx.wrap_socket(conn, server_side=True) as tls:
                    tls.recv(1)
            except (ssl.SSLError, OSError):
                pass


class LiveTLSDialTests(unittest.TestCase):
    def test_self_signed_expiring_certificate_over_real_handshake(self) -> None:
        serial = 2**150 + 424242
        cert, key = build_cert(
            timedelta(days=10, hours=12),
            dns_names=("localhost", "svc.local"),
            common_name="localhost",
            serial=serial,
        )
        with tempfile.TemporaryDirectory() as td, LocalTLSServer(cert, key, td) as server:
            result = TLSChecker(
                name="local", domain_name="127.0.0.1", port=server.port,
                threshold=30, attempts=2, timeout_s=5,
            ).check()

        self.assertTrue(result.degraded)
        self.assertEqual(result.notice, "")
        self.assertEqual([a.error for a in result.attempts], [None, None])
        self.assertEqual(result.context.serial, serial)
        self.assertEqual(result.context.dns_names, ("localhost", "svc.local"))
        self.assertEqual(result.context.common_name, "localhost")
        self.assertEqual(result.context.issuer, "Test Issuing CA")

    def test_closed_port_is_down(self) -> None:
        with socket.create_server(("127.0.0.1", 0)) as s:
            port = s.getsockname()[1]
        # Nothing listens on the port any more.
        result = TLSChecker(
            name="closed", domain_name="127.0.0.1", port=port, attempts=2, timeout_s=2,
        ).check()

        self.assertTrue(result.down)
        self.assertEqual(len(result.attempts), 2)
        self.assertTrue(all(a.error for a in result.attempts))
        self.assertEqual(result.context.serial, 0)


if __name__ == "__main__":
    unittest.main()
