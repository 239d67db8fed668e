from academy_auth.core.tokens import TokenGenerator


def test_verification_code_is_six_digits_without_leading_zero():
    gen = TokenGenerator()
    for _ in range(200):
        code = gen.verification_code()
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"


def test_reset_token_is_64_hex_chars_and_unique():
    gen = TokenGenerator()
    seen = {gen.reset_token() for _ in range(50)}
    assert len(seen) == 50
    for token in seen:
        assert len(token) == 64
        int(token, 16)


def test_oauth_state_is_url_safe():
    state = TokenGenerator().oauth_state()
    assert len(state) >= 32
    assert all(c.isalnum() or c in "-_" for c in state)
