import hashlib
import hmac

from tiktok_dashboard.integrations.tiktok_shop import generate_signature


def _expected(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def test_canonical_example():
    sign = generate_signature("/api/shop/get", {"app_key": "k", "timestamp": "100"}, "S")
    assert sign == _expected("S", "S/api/shop/getapp_keyktimestamp100S")


def test_parameters_are_sorted_before_concatenation():
    a = generate_signature("/p", {"timestamp": "100", "app_key": "k", "shop_cipher": "c"}, "S")
    b = generate_signature("/p", {"shop_cipher": "c", "app_key": "k", "timestamp": "100"}, "S")
    assert a == b == _expected("S", "S/papp_keykshop_cipherctimestamp100S")


def test_is_deterministic():
    params = {"app_key": "k", "timestamp": 1700000000, "page_size": 20}
    assert generate_signature("/x", params, "secret") == generate_signature("/x", dict(params), "secret")


def test_changing_an_included_param_changes_digest():
    base = generate_signature("/x", {"app_key": "k", "timestamp": "100"}, "S")
    assert generate_signature("/x", {"app_key": "k", "timestamp": "101"}, "S") != base
    assert generate_signature("/y", {"app_key": "k", "timestamp": "100"}, "S") != base
    assert generate_signature("/x", {"app_key": "k", "timestamp": "100"}, "T") != base


def test_access_token_and_sign_never_affect_digest():
    base = generate_signature("/x", {"app_key": "k", "timestamp": "100"}, "S")
    noisy = generate_signature(
        "/x",
        {"app_key": "k", "timestamp": "100", "access_token": "tok", "sign": "old"},
        "S",
    )
    assert noisy == base


def test_body_is_appended_only_when_given():
    params = {"app_key": "k", "timestamp": "100"}
    with_body = generate_signature("/x", params, "S", body='{"page_size":50}')
    assert with_body == _expected("S", 'S/xapp_keyktimestamp100{"page_size":50}S')
    assert generate_signature("/x", params, "S", body=None) == _expected("S", "S/xapp_keyktimestamp100S")
