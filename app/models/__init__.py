from app.models.hr.employee import Employee
from app.models.scheduling.schedule import Schedule
from app.models.scheduling.shift import Shift
from app.models.scheduling.shift_swap_request import ShiftSwapRequest
from app.models.alerts.notification_queue import NotificationQueue
