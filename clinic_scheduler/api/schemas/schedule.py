from clinic_scheduler.models.schedule import ScheduleChanges


class ScheduleUpdateRequest(ScheduleChanges):
    """Schedule edit plus the caller's consent to cancel what it orphans."""

    cancel_conflicting: bool = False
    # None cancels every detected conflict
    appointment_ids_to_cancel: list[int] | None = None

    def changes(self) -> ScheduleChanges:
        return ScheduleChanges(
            appointment_duration_min=self.appointment_duration_min,
            shift_template=self.shift_template,
            weekly=self.weekly,
        )
