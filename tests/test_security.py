import unittest
from datetime import datetime, timedelta, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
from jose import jwt

import tests.base  # noqa: F401

from crudkit.core.config import settings
from crudkit.core.deps import claims_from_request, get_current_claims
from crudkit.core.security import (
    ALGORITHM,
    InvalidTokenError,
    MissingSecretError,
    TokenExpiredError,
    create_token,
    decode_token,
)


class TokenTests(unittest.TestCase):
    def test_round_trip_claims(self):
        claims = decode_token(create_token("user-1", timedelta(minutes=5)))
        self.assertEqual(claims.sub, "user-1")
        self.assertEqual(claims.iss, settings.JWT_ISSUER)
        self.assertEqual(claims.iat, claims.nbf)
        self.assertEqual(claims.exp, claims.iat + 300)

    def test_non_positive_ttl_has_no_expiry(self):
        self.assertIsNone(decode_token(create_token("user-1")).exp)
        self.assertIsNone(decode_token(create_token("user-1", timedelta(0))).exp)

    def test_empty_subject(self):
        with self.assertRaises(ValueError):
            create_token("")

    def test_missing_secret(self):
        with self.assertRaises(MissingSecretError):
            create_token("user-1", secret="")
        with self.assertRaises(MissingSecretError):
            decode_token("abc", secret="")

    def test_expired_token(self):
        past = int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())
        token = jwt.encode(
            {"sub": "user-1", "iss": settings.JWT_ISSUER, "iat": past, "nbf": past, "exp": past + 60},
            settings.JWT_SECRET,
            algorithm=ALGORITHM,
        )
        with self.assertRaises(TokenExpiredError):
            decode_token(token)

    def test_wrong_secret(self):
        token = create_token("user-1", timedelta(minutes=5), secret="other-secret")
        with self.assertRaises(InvalidTokenError):
            decode_token(token)

    def test_wrong_issuer(self):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"sub": "user-1", "iss": "someone-else", "iat": now, "nbf": now},
            settings.JWT_SECRET,
            algorithm=ALGORITHM,
        )
        with self.assertRaises(InvalidTokenError):
            decode_token(token)

    def test_garbage_and_empty(self):
        for token in ("", "not.a.token"):
            with self.assertRaises(InvalidTokenError):
                decode_token(token)


class ClaimsDependencyTests(unittest.TestCase):
    def setUp(self):
        app = FastAPI()

        @app.get("/me", dependencies=[Depends(get_current_claims)])
        def me(request: Request):
            return {"sub": claims_from_request(request).sub}

        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_claims_are_stored_on_request(self):
        token = create_token("user-7", timedelta(minutes=1))
        response = self.client.get("/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"sub": "user-7"})

    def test_expired_token_is_rejected(self):
        past = int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())
        token = jwt.encode(
            {"sub": "user-7", "iss": settings.JWT_ISSUER, "iat": past, "nbf": past, "exp": past + 1},
            settings.JWT_SECRET,
            algorithm=ALGORITHM,
        )
        response = self.client.get("/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "token expired")


if __name__ == "__main__":
    unittest.main()
