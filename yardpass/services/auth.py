"""Auth-scoped profile access and session teardown."""

from yardpass.services.base import BaseService
from yardpass.services.cache import generate_cache_key
from yardpass.services.envelope import ResponseEnvelope
from yardpass.services.profiles import EntityType, Tier


def current_user_key(user_id: str) -> str:
    return generate_cache_key("auth", "user", user_id)


class AuthService(BaseService):
    context = "auth"

    async def get_current_user(self, user_id: str) -> ResponseEnvelope:
        """Profile row of the signed-in user, cached under auth:user:{id}."""

        async def fetch():
            result = await self.store.select(
                "profiles",
                columns=self.orchestrator.get_select(EntityType.PROFILE, Tier.FULL),
                filters={"user_id": user_id},
                single=True,
            )
            return result.data

        return await self.orchestrator.run(
            fetch,
            self.context,
            "getCurrentUser",
            cache_key=current_user_key(user_id),
            required={"user_id": user_id},
        )

    async def sign_out(self) -> None:
        """Drop every cached response; cached rows belong to the old session."""
        self.orchestrator.clear_cache()
