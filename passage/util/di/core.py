"""Core DI providers (non-mockable)."""

from dishka import Scope, provide

from passage.config import AuthSettings, BridgeSettings, HandleSettings, Settings
from passage.util.di.base import ProviderBase


class ProdConfigProvider(ProviderBase):
    """Settings, plus each section the domain and session layers take directly."""

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        return Settings()

    @provide(scope=Scope.APP)
    def provide_auth_settings(self, settings: Settings) -> AuthSettings:
        return settings.auth

    @provide(scope=Scope.APP)
    def provide_bridge_settings(self, settings: Settings) -> BridgeSettings:
        return settings.bridge

    @provide(scope=Scope.APP)
    def provide_handle_settings(self, settings: Settings) -> HandleSettings:
        return settings.handles
