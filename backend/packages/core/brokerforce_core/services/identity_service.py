"""
Identity resolution service.

Decides, for every authentication event, which user row to create, update or
link. Holds no state between calls: the store handle is injected and each
operation runs its reads and its single write in one transaction.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brokerforce_core import get_logger
from brokerforce_core.auth.credentials import (
    clean_avatar_url,
    normalize_email,
    split_display_name,
    validate_email,
    validate_name,
    validate_password,
    validate_username,
)
from brokerforce_core.auth.password import hash_password, verify_password
from brokerforce_core.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    LinkVerificationError,
    PersistenceError,
    UsernameTakenError,
    ValidationError,
)
from brokerforce_core.schemas import (
    ExternalAssertion,
    ExternalProfile,
    LinkCandidate,
    LocalRegistration,
    UsernameAvailability,
)
from brokerforce_database.models import User, utcnow

logger = get_logger(__name__)


@dataclass
class RegistrationResult:
    """
    Outcome of a local registration.

    Attributes:
        user: Created or linked user; None when linking must be confirmed first.
        linked: The credential was attached to an existing external account.
        needs_linking: The email belongs to an external account and nothing was written.
        existing_account: The account that would be linked.
    """

    user: User | None
    linked: bool = False
    needs_linking: bool = False
    existing_account: LinkCandidate | None = None


@lru_cache(maxsize=1)
def _placeholder_hash() -> str:
    # Compared against when the username is unknown so both failures cost the same
    return hash_password("placeholder-password-never-matches")


def _is_username_conflict(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "uq_users_username" in message or "users.username" in message


class IdentityService:
    """Resolves external and local credentials to user rows."""

    def __init__(self, session: AsyncSession):
        """
        Initialize identity service.

        Args:
            session: Database session used as the credential store.
        """
        self.session = session

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[None]:
        """
        Commit the operation's reads and write together.

        Storage failures are rolled back and reported as ``PersistenceError``,
        except username constraint violations which become ``UsernameTakenError``.
        """
        try:
            yield
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if _is_username_conflict(e):
                logger.info("Username claimed concurrently", extra={"operation": operation})
                raise UsernameTakenError() from e
            logger.exception("Constraint violation in identity store", extra={"operation": operation})
            raise PersistenceError() from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception("Identity store failure", extra={"operation": operation})
            raise PersistenceError() from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _find_by_external_id(self, external_id: str) -> User | None:
        stmt = select(User).where(User.external_id == external_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_by_email(self, email: str, *, external: bool) -> User | None:
        condition = User.external_id.is_not(None) if external else User.external_id.is_(None)
        stmt = (
            select(User)
            .where(User.email == email, condition)
            .order_by(User.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _username_taken(self, username: str, exclude_id: str | None = None) -> bool:
        stmt = select(User.id).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def get_user(self, user_id: str) -> User | None:
        """
        Get user by ID.

        Args:
            user_id: User identifier.

        Returns:
            The user, or None if no such row exists.
        """
        async with self._transaction("get_user"):
            user = await self.session.get(User, user_id)
        return user

    # ------------------------------------------------------------------
    # External identities
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_external_profile(user: User, profile: ExternalProfile) -> None:
        name, first_name, last_name = split_display_name(profile.display_name)
        if name:
            user.name = name
            user.first_name = first_name
            user.last_name = last_name
        user.email = profile.email
        avatar = clean_avatar_url(profile.avatar_url)
        if avatar is not None:
            user.avatar = avatar
        user.updated_at = utcnow()

    async def resolve_external_login(self, profile: ExternalProfile) -> User:
        """
        Map an external provider login to exactly one user row.

        Order of resolution:
            1. A row already bound to ``profile.external_id`` has its display
               fields refreshed.
            2. A local-only row with the same (verified) email is linked to
               the external identity.
            3. Otherwise a new external-only row is created.

        Args:
            profile: Verified profile from the identity provider.

        Returns:
            The updated, linked or created user.

        Raises:
            PersistenceError: If the store fails.
        """
        async with self._transaction("resolve_external_login"):
            user = await self._find_by_external_id(profile.external_id)
            if user is not None:
                self._apply_external_profile(user, profile)
                logger.info("External login refreshed user", extra={"user_id": user.id})
            else:
                if profile.email_verified:
                    user = await self._find_by_email(profile.email, external=False)

                if user is not None and user.external_id is not None:
                    # The lookup filters these out; never rebind an existing identity.
                    logger.warning(
                        "Local-only lookup returned an externally bound user",
                        extra={"user_id": user.id},
                    )
                    self._apply_external_profile(user, profile)
                elif user is not None:
                    user.external_id = profile.external_id
                    self._apply_external_profile(user, profile)
                    logger.info(
                        "Linked external identity to local account", extra={"user_id": user.id}
                    )
                else:
                    user = self._new_external_user(profile)
                    self.session.add(user)
                    logger.info("Created user from external login", extra={"email": user.email})

        return user

    @staticmethod
    def _new_external_user(profile: ExternalProfile) -> User:
        name, first_name, last_name = split_display_name(profile.display_name)
        if not name:
            name = first_name = profile.email.split("@", 1)[0]
        now = utcnow()
        return User(
            external_id=profile.external_id,
            email=profile.email,
            name=name,
            first_name=first_name,
            last_name=last_name,
            avatar=clean_avatar_url(profile.avatar_url),
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Local credentials
    # ------------------------------------------------------------------

    async def register_local(
        self,
        registration: LocalRegistration,
        link_to_external: bool = False,
        external_assertion: ExternalAssertion | Callable[[], ExternalAssertion | None] | None = None,
    ) -> RegistrationResult:
        """
        Register a username/password credential.

        If the email already belongs to an external account the caller gets a
        ``needs_linking`` result and nothing is written. Re-invoking with
        ``link_to_external`` and an assertion for that same external identity
        attaches the credential to the existing row, keeping its names.

        Args:
            registration: Submitted registration fields.
            link_to_external: Caller confirmed linking to the external account.
            external_assertion: Proof of a completed login with that account, or a
                callable producing it. The callable runs only once the fields are
                valid and the email turns out to belong to an external account.

        Returns:
            Registration result.

        Raises:
            ValidationError: If a field is malformed.
            UsernameTakenError: If the username belongs to another row.
            EmailAlreadyRegisteredError: If the email already has a local credential.
            LinkVerificationError: If linking lacks a matching assertion.
            PersistenceError: If the store fails.
        """
        username = validate_username(registration.username)
        password = validate_password(registration.password)
        first_name = validate_name(registration.first_name, "first_name", "First name")
        last_name = validate_name(registration.last_name, "last_name", "Last name")
        email = validate_email(registration.email)

        async with self._transaction("register_local"):
            if await self._username_taken(username):
                raise UsernameTakenError()

            external_user = await self._find_by_email(email, external=True)
            if external_user is not None:
                if external_user.password_hash:
                    raise EmailAlreadyRegisteredError()
                if not link_to_external:
                    return RegistrationResult(
                        user=None,
                        needs_linking=True,
                        existing_account=LinkCandidate(
                            email=external_user.email, name=external_user.name
                        ),
                    )
                self._check_assertion(external_user, external_assertion)
                if await self._username_taken(username, exclude_id=external_user.id):
                    raise UsernameTakenError()

                external_user.username = username
                external_user.password_hash = hash_password(password)
                # Names from the external identity win when present
                external_user.first_name = external_user.first_name or first_name
                external_user.last_name = external_user.last_name or last_name
                external_user.name = external_user.name or f"{first_name} {last_name}"
                external_user.updated_at = utcnow()
                result = RegistrationResult(user=external_user, linked=True)
                logger.info(
                    "Linked local credential to external account",
                    extra={"user_id": external_user.id},
                )
            else:
                if await self._find_by_email(email, external=False) is not None:
                    raise EmailAlreadyRegisteredError()

                now = utcnow()
                user = User(
                    username=username,
                    password_hash=hash_password(password),
                    first_name=first_name,
                    last_name=last_name,
                    name=f"{first_name} {last_name}",
                    email=email,
                    created_at=now,
                    updated_at=now,
                )
                self.session.add(user)
                result = RegistrationResult(user=user, linked=False)
                logger.info("Registered local user", extra={"username": username})

        return result

    @staticmethod
    def _check_assertion(
        user: User,
        assertion: ExternalAssertion | Callable[[], ExternalAssertion | None] | None,
    ) -> None:
        if callable(assertion):
            assertion = assertion()
        if assertion is None:
            raise LinkVerificationError()
        if assertion.external_id != user.external_id or normalize_email(assertion.email) != user.email:
            raise LinkVerificationError("The confirmed external account does not own this email")

    async def authenticate_local(self, username: str, password: str) -> User:
        """
        Verify a username/password login.

        Args:
            username: Submitted username (any case).
            password: Submitted password.

        Returns:
            The authenticated user, unchanged.

        Raises:
            ValidationError: If either credential is empty.
            InvalidCredentialsError: For unknown users, accounts without a
                password and wrong passwords alike.
            PersistenceError: If the store fails.
        """
        if not username or not password:
            raise ValidationError("credentials", "Username and password are required")

        async with self._transaction("authenticate_local"):
            stmt = select(User).where(User.username == username.lower())
            result = await self.session.execute(stmt)
            user = result.scalar_one_or_none()

        if user is None or not user.password_hash:
            verify_password(password, _placeholder_hash())
            raise InvalidCredentialsError()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def check_username(self, username: str) -> UsernameAvailability:
        """
        Report whether a username can still be registered.

        Malformed usernames are reported as available with the validation
        message; registration rejects them with the proper error.

        Args:
            username: Candidate username.

        Returns:
            Availability result.
        """
        try:
            normalized = validate_username(username)
        except ValidationError as e:
            return UsernameAvailability(available=True, error=e.message)

        async with self._transaction("check_username"):
            taken = await self._username_taken(normalized)
        return UsernameAvailability(available=not taken)
