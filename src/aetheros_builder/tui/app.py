"""Textual application providing an interactive AetherOS ISO builder."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.message import Message
from textual.reactive import reactive
from textual.widgets import Button, Checkbox, Footer, Header, Input, Label, RichLog, Select, Static

from ..builder import IsoBuildRunner, render_command_sequence
from ..config import KERNEL_POLICIES, SUPPORTED_ARCHES, BuildConfig

PATH_FIELDS = {"workdir", "include_file", "exclude_file"}


class ConfigUpdated(Message):
    """Dispatched when the configuration changes."""

    def __init__(self, config: BuildConfig) -> None:
        self.config = config
        super().__init__()


class ConfigForm(Static):
    """Left-side configuration form."""

    def __init__(self, config: BuildConfig) -> None:
        super().__init__(id="config-form")
        self.config = config

    def compose(self) -> ComposeResult:
        yield Label("Build configuration", id="form-title")
        yield Select([(arch, arch) for arch in SUPPORTED_ARCHES], value=self.config.architecture, id="architecture")
        yield Select(
            [(f"{policy} kernel", policy) for policy in KERNEL_POLICIES],
            value=self.config.kernel_policy,
            id="kernel_policy",
        )
        yield Input(self.config.release, placeholder="Release codename", id="release")
        yield Input(self.config.mirror, placeholder="Mirror URL", id="mirror")
        yield Input(self.config.volume_id, placeholder="ISO volume id", id="volume_id")
        yield Input(str(self.config.workdir), placeholder="Working directory", id="workdir")
        yield Input(str(self.config.include_file), placeholder="Package include list", id="include_file")
        yield Input(str(self.config.exclude_file), placeholder="Package exclude list", id="exclude_file")
        yield Checkbox("Simulate build", value=self.config.simulate, id="simulate")

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.value is Select.BLANK:
            return
        self._update_config(event.control.id or "", event.value)

    def on_input_changed(self, event: Input.Changed) -> None:
        field_id = event.control.id or ""
        value = event.value.strip()
        if field_id in PATH_FIELDS and not value:
            return
        self._update_config(field_id, value)

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        self._update_config(event.control.id or "", bool(event.value))

    def _update_config(self, field: str, value: object) -> None:
        if not field:
            return
        try:
            updated = self.config.with_updates(**{field: value})
        except ValueError:
            self.app.bell()
            return
        if updated == self.config:
            return
        self.config = updated
        self.post_message(ConfigUpdated(self.config))


class ScriptPreview(RichLog):
    def __init__(self) -> None:
        super().__init__(id="script-preview", highlight=True, wrap=False)
        self.write("Command preview will appear here.")

    def update_commands(self, commands: Iterable[str]) -> None:
        self.clear()
        for index, command in enumerate(commands, start=1):
            self.write(f"[{index}] {command}")


class BuildLog(RichLog):
    def __init__(self) -> None:
        super().__init__(id="build-log", highlight=False, markup=False)
        self.write("Build output will appear here.")

    def append_line(self, line: str) -> None:
        self.write(line)
        self.scroll_end(animate=False)

    def reset(self) -> None:
        self.clear()


class IsoBuilderApp(App[None]):
    """Main Textual application."""

    CSS = """
    #body {
        height: 1fr;
    }

    #config-form {
        width: 1fr;
        padding: 1;
        border: solid $surface-lighten-2;
    }

    #config-form Input,
    #config-form Select,
    #config-form Checkbox {
        margin-bottom: 1;
    }

    #right-pane {
        width: 2fr;
        padding: 1;
        border: solid $surface-lighten-2;
    }

    #script-preview,
    #build-log {
        height: 1fr;
        border: round $surface-lighten-1;
        padding: 1;
    }

    #controls {
        height: auto;
        padding-top: 1;
    }

    #form-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    BINDINGS = [
        Binding("b", "start_build", "Start build", show=True),
        Binding("e", "export_config", "Export config", show=True),
        Binding("r", "reset_form", "Reset", show=True),
    ]

    config: reactive[BuildConfig] = reactive(BuildConfig, always_update=True)

    def __init__(self, config: Optional[BuildConfig] = None) -> None:
        super().__init__()
        self._initial_config = config or BuildConfig(simulate=True)
        self.set_reactive(IsoBuilderApp.config, self._initial_config)

    def compose(self) -> ComposeResult:
        self.script_preview = ScriptPreview()
        self.build_log = BuildLog()
        self.form = ConfigForm(self.config)

        yield Header(show_clock=True)
        with Container(id="body"):
            with Horizontal(id="columns"):
                yield self.form
                with Vertical(id="right-pane"):
                    yield Label("Generated command plan", classes="section-title")
                    yield self.script_preview
                    yield Label("Build log", classes="section-title")
                    yield self.build_log
                    with Horizontal(id="controls"):
                        yield Button("Start Build", id="start-build", variant="success")
                        yield Button("Export Config", id="export-config", variant="primary")
                        yield Button("Reset", id="reset", variant="warning")
        yield Footer()

    def on_mount(self) -> None:
        self._refresh_preview()

    def on_config_updated(self, message: ConfigUpdated) -> None:
        self.config = message.config
        self._refresh_preview()

    def _refresh_preview(self) -> None:
        self.script_preview.update_commands(render_command_sequence(self.config))

    def action_start_build(self) -> None:
        self._start_build()

    def action_export_config(self) -> None:
        self._export_config()

    async def action_reset_form(self) -> None:
        await self._reset_form()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "start-build":
            self._start_build()
        elif event.button.id == "export-config":
            self._export_config()
        elif event.button.id == "reset":
            await self._reset_form()

    async def _reset_form(self) -> None:
        self.config = self._initial_config
        new_form = ConfigForm(self.config)
        await self.form.remove()
        await self.query_one("#columns", Horizontal).mount(new_form, before=0)
        self.form = new_form
        self._refresh_preview()

    def _start_build(self) -> None:
        self.build_log.reset()
        runner = IsoBuildRunner(self.config, console=False)

        async def run_build() -> None:
            self.build_log.append_line("Starting build...")
            result = await runner.run(callback=self.build_log.append_line)
            if result.success:
                self.build_log.append_line("Build completed successfully.")
            elif result.log_path:
                self.build_log.append_line(f"Build failed: {result.error}. See {result.log_path}")
            else:
                self.build_log.append_line(f"Build failed: {result.error}")

        self.run_worker(run_build, exclusive=True, thread=False)

    def _export_config(self) -> None:
        destination = Path(self.config.workdir) / "aetheros-build-config.json"
        IsoBuildRunner(self.config).export_config(destination)
        self.build_log.append_line(f"Configuration exported to {destination}")


def run(config: Optional[BuildConfig] = None) -> None:
    app = IsoBuilderApp(config)
    app.run()


__all__ = ["IsoBuilderApp", "run"]
