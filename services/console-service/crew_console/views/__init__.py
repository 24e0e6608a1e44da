"""Page-level view models exposed by the HTTP routes."""

from .creation import CreateAgent, CreatePlayer, CreationView
from .dashboard import AgentDashboard, DashboardStats, DashboardView, MasterAdminDashboard
from .management import ManageAgents, ManagePlayers, ManagementView

__all__ = [
    "AgentDashboard",
    "CreateAgent",
    "CreatePlayer",
    "CreationView",
    "DashboardStats",
    "DashboardView",
    "ManageAgents",
    "ManagePlayers",
    "ManagementView",
    "MasterAdminDashboard",
]
