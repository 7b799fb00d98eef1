import logging
from dataclasses import dataclass
from typing import Optional

from tomorrowify.application.playlists import PlaylistResolver, TrackPager
from tomorrowify.application.rotation import BatchMover
from tomorrowify.crosscutting.config import TODAY_PLAYLIST_DESCRIPTION, TOMORROW_PLAYLIST_DESCRIPTION
from tomorrowify.crosscutting.logging import bind_user
from tomorrowify.crosscutting.metrics import MetricsEmitter
from tomorrowify.domain.entities import RotationOutcome, UserCredential
from tomorrowify.domain.errors import InvalidUserError, UserRotationError
from tomorrowify.domain.ports import AuthService, ProviderFactory


logger = logging.getLogger(__name__)

STATUS_ROTATED = 'rotated'
STATUS_NOOP = 'noop'
STATUS_INVALID_USER = 'invalid_user'
STATUS_PROVIDER_ERROR = 'provider_error'


@dataclass(frozen=True)
class UserResult:
    """Explicit outcome of one user's rotation."""

    user_key: str
    status: str
    outcome: Optional[RotationOutcome] = None
    error: Optional[UserRotationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, user_key: str, outcome: RotationOutcome) -> "UserResult":
        status = STATUS_NOOP if outcome.is_noop else STATUS_ROTATED
        return cls(user_key=user_key, status=status, outcome=outcome)

    @classmethod
    def failure(cls, error: UserRotationError) -> "UserResult":
        status = STATUS_INVALID_USER if isinstance(error.cause, InvalidUserError) else STATUS_PROVIDER_ERROR
        return cls(user_key=error.user_key, status=status, error=error)


class RotationWorker:
    """Runs the Tomorrow -> Today rotation for one user at a time."""

    def __init__(self,
                 auth: AuthService,
                 provider_factory: ProviderFactory,
                 emitter: MetricsEmitter,
                 tomorrow_name: str = 'Tomorrow',
                 today_name: str = 'Today'):
        self.auth = auth
        self.provider_factory = provider_factory
        self.emitter = emitter
        self.tomorrow_name = tomorrow_name
        self.today_name = today_name

    def rotate(self, credential: UserCredential, log=None) -> RotationOutcome:
        """Rotate the user's playlists.

        Raises:
            UserRotationError: wrapping whatever stopped the rotation
        """
        log = log or bind_user(logger, credential.key)
        try:
            return self._rotate(credential, log)
        except Exception as e:
            raise UserRotationError(credential.key, e) from e

    def run(self, credential: UserCredential, log=None) -> UserResult:
        """Rotate the user's playlists and report the result instead of raising."""
        try:
            outcome = self.rotate(credential, log)
        except UserRotationError as e:
            return UserResult.failure(e)
        return UserResult.success(credential.key, outcome)

    def _rotate(self, credential: UserCredential, log) -> RotationOutcome:
        log.info("Refreshing access token")
        access_token = self.auth.refresh_access_token(credential.refresh_token)
        provider = self.provider_factory(access_token)

        profile = provider.current_user()
        if profile is None:
            raise InvalidUserError(credential.key)
        display_name = profile.display_name or profile.id
        log.info(f"Rotating playlists for Spotify user {profile.id} ({display_name})")

        resolver = PlaylistResolver(provider, profile.id, log=log)
        tomorrow = resolver.resolve(self.tomorrow_name, TOMORROW_PLAYLIST_DESCRIPTION)
        today = resolver.resolve(self.today_name, TODAY_PLAYLIST_DESCRIPTION)

        tracks = [track for track in TrackPager(provider).fetch_all(tomorrow.id) if track.is_eligible]

        mover = BatchMover(provider, self.emitter, log=log)
        outcome = mover.rotate(tomorrow, today, tracks, tags=[('User', profile.id)])

        if outcome.is_noop:
            log.info(f"{self.tomorrow_name} is empty, nothing to rotate")
        else:
            log.info(f"Moved {outcome.moved} tracks in {outcome.batches} batches")
        return outcome
