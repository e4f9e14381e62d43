"""Agent grid: one card per pipeline agent, in registry order."""

from __future__ import annotations

from collections.abc import Mapping

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.widget import Widget

from autodev.adapters.agent_adapter import AGENT_COLORS, AGENT_ICONS, STATUS_DISPLAY
from autodev.engine.models import AgentId, AgentStatus
from autodev.engine.registry import AGENT_ORDER, AGENTS


class AgentCard(Widget):
    """Icon, name, description and live status of a single agent."""

    status: reactive[AgentStatus] = reactive(AgentStatus.IDLE)
    active: reactive[bool] = reactive(False)

    def __init__(self, agent_id: AgentId, **kwargs) -> None:
        super().__init__(id=f"agent-{agent_id.value}", **kwargs)
        self.agent_id = agent_id

    def watch_status(self, old_value: AgentStatus, new_value: AgentStatus) -> None:
        self.remove_class(f"status-{old_value.value}")
        self.add_class(f"status-{new_value.value}")

    def watch_active(self, value: bool) -> None:
        self.set_class(value, "active")

    def render(self) -> Text:
        agent = AGENTS[self.agent_id]
        color = AGENT_COLORS.get(self.agent_id, "white")
        label, style = STATUS_DISPLAY[self.status]

        card = Text()
        card.append(f"{AGENT_ICONS[self.agent_id]} ", style=color)
        card.append(agent.name, style=f"bold {color}")
        card.append("\n")
        card.append(agent.description, style="dim")
        card.append("\n")
        card.append(label, style=style)
        return card


class AgentGrid(Horizontal):
    """Row of AgentCards."""

    def compose(self) -> ComposeResult:
        for agent_id in AGENT_ORDER:
            yield AgentCard(agent_id)

    def card(self, agent_id: AgentId) -> AgentCard:
        return self.query_one(f"#agent-{agent_id.value}", AgentCard)

    def show_statuses(
        self,
        statuses: Mapping[AgentId, AgentStatus],
        active_agent: AgentId | None,
    ) -> None:
        for agent_id in AGENT_ORDER:
            card = self.card(agent_id)
            card.status = statuses.get(agent_id, AgentStatus.IDLE)
            card.active = agent_id == active_agent
