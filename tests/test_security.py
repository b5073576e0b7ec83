from app.security import hash_password, verify_password


def test_hash_is_salted_and_not_plaintext():
    first = hash_password("hunter22")
    second = hash_password("hunter22")
    assert first != "hunter22"
    assert first != second
    assert verify_password("hunter22", first)
    assert verify_password("hunter22", second)


def test_wrong_password_is_rejected():
    stored = hash_password("hunter22")
    assert not verify_password("hunter23", stored)
    assert not verify_password("", stored)


def test_malformed_hash_does_not_raise():
    assert not verify_password("hunter22", "not-a-bcrypt-hash")
    assert not verify_password("hunter22", "")
