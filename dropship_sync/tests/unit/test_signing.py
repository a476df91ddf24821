"""요청 서명 단위 테스트"""
import hashlib
import hmac

from dropship_sync.adapters.suppliers.signing import AlibabaHmacSigner, stringify_param


def test_alibaba_signature_over_sorted_params():
    signer = AlibabaHmacSigner("SECRET")
    url_path = "param2/1/system/currentTime/KEY"

    signature = signer.sign(url_path, {"b": "2", "a": "1"})

    expected = hmac.new(b"SECRET", b"param2/1/system/currentTime/KEYa1b2", hashlib.sha1).hexdigest().upper()
    assert signature == expected
    assert signature == signature.upper()


def test_signature_independent_of_param_order():
    signer = AlibabaHmacSigner("SECRET")

    assert signer.sign("p", {"x": "1", "y": "2"}) == signer.sign("p", {"y": "2", "x": "1"})


def test_stringify_param():
    assert stringify_param(5) == "5"
    assert stringify_param(True) == "true"
    assert stringify_param({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
    assert stringify_param("한글") == "한글"
