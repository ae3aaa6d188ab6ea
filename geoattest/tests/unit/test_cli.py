"""
Tests for the attest_location command-line tool
"""
import json

import pytest

import attest_location
from conftest import TEST_PRIVATE_KEY_PEM, TEST_PUBLIC_KEY_PEM, OTHER_PUBLIC_KEY_PEM, WEB_SIGNATURE_CHECKPOINT_1
from geoattest.core.location import Position


@pytest.fixture
def key_files(tmp_path):
    priv = tmp_path / "privkey.pem"
    pub = tmp_path / "pubkey.pem"
    other = tmp_path / "other.pem"
    priv.write_text(TEST_PRIVATE_KEY_PEM)
    pub.write_text(TEST_PUBLIC_KEY_PEM)
    other.write_text(OTHER_PUBLIC_KEY_PEM)
    return {"priv": str(priv), "pub": str(pub), "other": str(other)}


def _sign(capsys, key_files, *extra):
    code = attest_location.main([
        "sign", "--key", key_files["priv"], "--message", "checkpoint-1", *extra,
    ])
    return code, capsys.readouterr()


class TestSignCommand:
    """attest_location.py sign"""

    def test_sign_explicit_position(self, capsys, key_files):
        code, out = _sign(capsys, key_files, "--lat", "35.68123", "--lon", "139.767",
                          "--timestamp", "2024-01-01T00:00:00.000Z")
        assert code == 0
        attestation = json.loads(out.out)
        assert attestation["payload"] == {
            "latitude": 35.681,
            "longitude": 139.767,
            "timestamp": "2024-01-01T00:00:00.000Z",
            "message": "checkpoint-1",
        }
        assert attestation["scheme"] == "ecdsa-p521-sha512-p1363"

    def test_sign_uses_captured_position(self, capsys, key_files, monkeypatch):
        async def fake_capture(**kwargs):
            return Position(48.858, 2.294)

        monkeypatch.setattr(attest_location, "capture_current_position", fake_capture)
        code, out = _sign(capsys, key_files)
        assert code == 0
        payload = json.loads(out.out)["payload"]
        assert (payload["latitude"], payload["longitude"]) == (48.858, 2.294)
        assert payload["timestamp"].endswith("Z")

    def test_location_unavailable(self, capsys, key_files, monkeypatch):
        async def no_fix(**kwargs):
            raise attest_location.LocationUnavailable("no provider")

        monkeypatch.setattr(attest_location, "capture_current_position", no_fix)
        code, out = _sign(capsys, key_files)
        assert code == 2
        assert "Location unavailable" in out.err

    def test_lat_without_lon(self, capsys, key_files):
        code, out = _sign(capsys, key_files, "--lat", "1.0")
        assert code == 2

    def test_out_of_range_latitude(self, capsys, key_files):
        code, out = _sign(capsys, key_files, "--lat", "1e30", "--lon", "2.0")
        assert code == 2
        assert "Invalid payload" in out.err

    def test_bad_key_file(self, capsys, key_files):
        code = attest_location.main(["sign", "--key", key_files["pub"], "--message", "m",
                                     "--lat", "1", "--lon", "2"])
        assert code == 2
        assert "Cannot load private key" in capsys.readouterr().err


class TestVerifyCommand:
    """attest_location.py verify"""

    def _write(self, tmp_path, data):
        path = tmp_path / "attestation.json"
        path.write_text(json.dumps(data))
        return str(path)

    def test_sign_then_verify(self, capsys, key_files, tmp_path):
        _, out = _sign(capsys, key_files, "--lat", "1.5", "--lon", "2.5")
        path = tmp_path / "att.json"
        path.write_text(out.out)

        assert attest_location.main(["verify", str(path), "--pubkey", key_files["pub"]]) == 0
        assert "VALID" in capsys.readouterr().out

    def test_wrong_key(self, capsys, key_files, tmp_path):
        path = self._write(tmp_path, {
            "payload": {"latitude": 35.681, "longitude": 139.767,
                        "timestamp": "2024-01-01T00:00:00.000Z", "message": "checkpoint-1"},
            "signature": WEB_SIGNATURE_CHECKPOINT_1,
        })
        assert attest_location.main(["verify", path, "--pubkey", key_files["pub"]]) == 0
        assert attest_location.main(["verify", path, "--pubkey", key_files["other"]]) == 1

    def test_missing_attestation_file(self, capsys, key_files, tmp_path):
        code = attest_location.main(["verify", str(tmp_path / "nope.json"), "--pubkey", key_files["pub"]])
        assert code == 2
        assert "Cannot read attestation" in capsys.readouterr().err

    def test_unparseable_file_is_invalid(self, capsys, key_files, tmp_path):
        path = tmp_path / "att.json"
        path.write_text("{not json")
        assert attest_location.main(["verify", str(path), "--pubkey", key_files["pub"]]) == 1
        assert "INVALID" in capsys.readouterr().out


class TestCanonicalCommand:
    """attest_location.py canonical"""

    def test_prints_canonical_bytes(self, capsysbinary):
        code = attest_location.main([
            "canonical", "--lat", "35.681", "--lon", "139.767",
            "--timestamp", "2024-01-01T00:00:00.000Z", "--message", "checkpoint-1",
        ])
        assert code == 0
        assert capsysbinary.readouterr().out == (
            b'{"latitude":35.681,"longitude":139.767,'
            b'"timestamp":"2024-01-01T00:00:00.000Z","message":"checkpoint-1"}\n'
        )
