from booklib.security import hash_password, verify_password


def test_hash_is_salted_and_not_plaintext():
    h1 = hash_password("secret1", rounds=4)
    h2 = hash_password("secret1", rounds=4)
    assert h1 != "secret1"
    assert h1 != h2
    assert h1.startswith("$2")


def test_verify_roundtrip():
    h = hash_password("secret1", rounds=4)
    assert verify_password("secret1", h) is True
    assert verify_password("secret2", h) is False


def test_default_work_factor_is_ten_rounds():
    h = hash_password("secret1")
    assert h.split("$")[2] == "10"


def test_malformed_or_missing_hash_is_false_not_error():
    assert verify_password("secret1", "not-a-bcrypt-hash") is False
    assert verify_password("secret1", "") is False
    assert verify_password("secret1", None) is False
    assert verify_password("", hash_password("secret1", rounds=4)) is False
