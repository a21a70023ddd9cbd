"""Tests for StrategyRegistry ordering and refresh selection."""

from trainingpeaks.auth.registry import StrategyRegistry

from conftest import FakeStrategy


class TestStrategyRegistry:

    def test_first_compatible_wins(self, web_config):
        first = FakeStrategy("first")
        second = FakeStrategy("second")
        registry = StrategyRegistry([first, second])
        assert registry.select(web_config) is first

    def test_skips_incompatible(self, web_config, api_config):
        api = FakeStrategy("api", web=False)
        web = FakeStrategy("web", web=True)
        registry = StrategyRegistry([api, web])
        assert registry.select(web_config) is web
        assert registry.select(api_config) is api

    def test_no_match(self, web_config):
        registry = StrategyRegistry([FakeStrategy("api", web=False)])
        assert registry.select(web_config) is None

    def test_custom_predicate(self, web_config):
        strategy = FakeStrategy("picky")
        registry = StrategyRegistry()
        registry.register(strategy, predicate=lambda config: config.debug)
        assert registry.select(web_config) is None

    def test_select_refreshable(self, web_config, api_config):
        web = FakeStrategy("web", web=True)
        api = FakeStrategy("api", web=False, supports_refresh=True)
        registry = StrategyRegistry([web, api])
        assert registry.select_refreshable(web_config) is None
        assert registry.select_refreshable(api_config) is api

    def test_names_in_order(self):
        registry = StrategyRegistry([FakeStrategy("web"), FakeStrategy("api")])
        assert registry.names() == ["web", "api"]
        assert len(registry) == 2
