from pathlib import Path

from ward_monitor.core.config import settings
from ward_monitor.modules.alerts.config import load_rules
from ward_monitor.modules.alerts.engine import MonitorService
from ward_monitor.modules.alerts.manager import AlertConnectionManager

rules_path = Path(settings.MONITOR_RULES_PATH) if settings.MONITOR_RULES_PATH else None
alert_manager = AlertConnectionManager()
monitor_service = MonitorService(
    rules=load_rules(rules_path),
    manager=alert_manager,
    history_limit=settings.MONITOR_ALERT_HISTORY_LIMIT,
)
