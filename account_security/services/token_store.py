"""
Single-use token store for email verification and password reset.

Verification tokens are keyed by token, so several may be live for one
email. Reset tokens are keyed by email, so issuing one replaces the
previous token for that email. Expiry is checked lazily on consume.
"""

import secrets
from datetime import datetime, timedelta
from typing import Dict, Optional, Type

from ..auth.emails import normalize_email
from ..models.token import IssuedToken, PasswordResetToken, TokenKind, VerificationToken
from ..storage import PASSWORD_RESET_TOKENS_KEY, VERIFICATION_TOKENS_KEY, KeyValueStore
from ..storage.tables import load_mapping, save_mapping
from ..utils.clock import ensure_utc
from ..utils.exceptions import InvalidTokenError, TokenExpiredError
from ..utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_BYTES = 32


class TokenStore:
    """Issue and consume tokens of one kind"""

    def __init__(self, store: KeyValueStore, kind: TokenKind):
        self.store = store
        self.kind = kind
        if kind == "verification":
            self.table = VERIFICATION_TOKENS_KEY
            self.model: Type[IssuedToken] = VerificationToken
        else:
            self.table = PASSWORD_RESET_TOKENS_KEY
            self.model = PasswordResetToken

    @property
    def keyed_by_email(self) -> bool:
        return self.kind == "reset"

    def _load(self) -> Dict[str, IssuedToken]:
        return load_mapping(self.store, self.table, self.model)

    def _save(self, tokens: Dict[str, IssuedToken]) -> None:
        save_mapping(self.store, self.table, tokens)

    def _find(self, tokens: Dict[str, IssuedToken], token: str) -> Optional[str]:
        """Return the map key holding ``token``"""
        if not self.keyed_by_email:
            return token if token in tokens else None
        for key, record in tokens.items():
            if secrets.compare_digest(record.token.encode("utf-8"), token.encode("utf-8")):
                return key
        return None

    def issue(self, email: str, ttl: timedelta, now: Optional[datetime] = None) -> str:
        """Create a fresh token for ``email`` valid for ``ttl``"""
        now = ensure_utc(now)
        email = normalize_email(email)
        tokens = self._load()
        value = secrets.token_urlsafe(TOKEN_BYTES)
        while self._find(tokens, value) is not None:
            value = secrets.token_urlsafe(TOKEN_BYTES)

        record = self.model(token=value, email=email, expires_at=now + ttl)
        key = email if self.keyed_by_email else value
        tokens[key] = record
        self._save(tokens)
        logger.info("Token issued", kind=self.kind, email=email, expires_at=record.expires_at.isoformat())
        return value

    def consume(self, token: str, now: Optional[datetime] = None) -> str:
        """
        Use a token once and return its email.

        Raises:
            InvalidTokenError: token unknown or already used
            TokenExpiredError: ``now >= expires_at``; the token is deleted
        """
        now = ensure_utc(now)
        tokens = self._load()
        key = self._find(tokens, token) if token else None
        if key is None:
            raise InvalidTokenError("Invalid token")

        record = tokens.pop(key)
        self._save(tokens)
        if record.is_expired(now):
            logger.info("Expired token rejected", kind=self.kind, email=record.email)
            raise TokenExpiredError("Token has expired")
        return record.email

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every expired token; returns how many were removed"""
        now = ensure_utc(now)
        tokens = self._load()
        live = {k: t for k, t in tokens.items() if not t.is_expired(now)}
        removed = len(tokens) - len(live)
        if removed:
            self._save(live)
        return removed
