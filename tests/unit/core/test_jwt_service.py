"""Unit tests for identity token generation and decoding."""

import time

import pytest
from authlib.jose import JoseError

from hull_client.core.errors import MissingConfig, UnsupportedSubjectType
from hull_client.core.models import AdditionalClaims
from hull_client.core.services.jwt import build_token, decode_token, lookup_token
from tests.utils import decode


@pytest.fixture
def credentials(connector_id, connector_secret):
    return {"id": connector_id, "secret": connector_secret}


class TestBuildToken:
    """Test token signing."""

    def test_sets_issuer_and_issued_at(self, credentials, connector_id):
        before = int(time.time())
        claims = decode(build_token(credentials, {"sub": "123"}))

        assert claims["iss"] == connector_id
        assert claims["sub"] == "123"
        assert before <= claims["iat"] <= int(time.time())

    def test_produces_three_segments(self, credentials):
        token = build_token(credentials)

        assert isinstance(token, str)
        assert len(token.split(".")) == 3

    def test_coerces_time_claims(self, credentials):
        claims = decode(build_token(credentials, {"nbf": "1500000000", "exp": 1600000000.7}))

        assert claims["nbf"] == 1500000000
        assert claims["exp"] == 1600000000

    def test_signs_with_access_token_when_present(self, credentials):
        token = build_token({**credentials, "access_token": "other-key"})

        assert decode(token, "other-key")["iss"] == credentials["id"]
        with pytest.raises(JoseError):
            decode(token, credentials["secret"])

    @pytest.mark.parametrize("config", [None, {}, {"id": "abc"}, {"secret": "1234"}])
    def test_requires_id_and_secret(self, config):
        with pytest.raises(MissingConfig):
            build_token(config)


class TestLookupToken:
    """Test identity token claims."""

    def test_string_subject_claim_becomes_sub(self, credentials):
        claims = decode(lookup_token(credentials, "user", {"user": "123"}))

        assert claims["sub"] == "123"
        assert "io.hull.asUser" not in claims
        assert claims["io.hull.subjectType"] == "user"

    def test_object_claim_is_embedded(self, credentials):
        claims = decode(lookup_token(credentials, "user", {"user": {"email": "foo@bar.com"}}))

        assert claims["io.hull.asUser"] == {"email": "foo@bar.com"}
        assert "sub" not in claims

    def test_object_claim_id_becomes_sub(self, credentials):
        claims = decode(lookup_token(credentials, "account", {"account": {"id": "abc", "domain": "hull.io"}}))

        assert claims["sub"] == "abc"
        assert claims["io.hull.asAccount"] == {"id": "abc", "domain": "hull.io"}

    def test_links_other_entity_string_claim(self, credentials):
        claims = decode(
            lookup_token(credentials, "account", {"user": "1234", "account": {"domain": "hull.io"}})
        )

        assert claims["io.hull.asUser"] == {"id": "1234"}
        assert claims["io.hull.asAccount"] == {"domain": "hull.io"}
        assert claims["io.hull.subjectType"] == "account"

    def test_subject_type_is_case_insensitive(self, credentials):
        claims = decode(lookup_token(credentials, "USER", {"user": "123"}))

        assert claims["io.hull.subjectType"] == "user"

    def test_rejects_unknown_subject_type(self, credentials):
        with pytest.raises(UnsupportedSubjectType):
            lookup_token(credentials, "lead", {})

    def test_copies_only_explicit_additional_claims(self, credentials):
        claims = decode(lookup_token(credentials, "user", {"user": "1"}, {"create": False}))

        assert claims["io.hull.create"] is False
        assert "io.hull.active" not in claims
        assert "scopes" not in claims

    def test_accepts_additional_claims_model(self, credentials):
        additional = AdditionalClaims(scopes=["admin"], active=True)
        claims = decode(lookup_token(credentials, "user", {"user": "1"}, additional))

        assert claims["scopes"] == ["admin"]
        assert claims["io.hull.active"] is True
        assert "io.hull.create" not in claims


class TestDecodeToken:
    def test_round_trips_claims(self, credentials):
        token = lookup_token(credentials, "user", {"user": {"email": "foo@bar.com"}})

        claims = decode_token(token, credentials["secret"])

        assert claims["io.hull.asUser"] == {"email": "foo@bar.com"}

    def test_rejects_wrong_secret(self, credentials):
        token = build_token(credentials)

        with pytest.raises(JoseError):
            decode_token(token, "not-the-secret")

    def test_validates_expiry_on_request(self, credentials):
        token = build_token(credentials, {"exp": int(time.time()) - 60})

        assert decode_token(token, credentials["secret"])["exp"] < time.time()
        with pytest.raises(JoseError):
            decode_token(token, credentials["secret"], verify_time=True)
