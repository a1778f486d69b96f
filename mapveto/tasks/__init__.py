"""Background tasks for application maintenance."""
from mapveto.tasks.session_maintenance import run_session_maintenance, session_maintenance_cycle

__all__ = ['run_session_maintenance', 'session_maintenance_cycle']
