import pytest

from aetheros_builder.tui.app import ConfigForm, IsoBuilderApp


@pytest.mark.asyncio
async def test_app_starts_with_simulated_config(config):
    app = IsoBuilderApp(config.with_updates(simulate=True))
    async with app.run_test() as pilot:
        await pilot.pause()
        assert app.config.simulate
        form = app.query_one(ConfigForm)
        assert form.config.workdir == config.workdir
