"""Built-in rule templates.

Templates are plain rule definitions without an owner. Placeholders such as
``{{doctor_name}}`` are kept verbatim in the created rule; callers override
recipients and other values through ``overrides``.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from autorules.core.errors import TemplateNotFoundError
from autorules.models.rule import Action, Rule, Trigger

# Fields a caller may override when instantiating a template
OVERRIDABLE_FIELDS = ("name", "description", "trigger", "actions", "enabled")


@dataclass(frozen=True)
class RuleTemplate:
    """A reusable rule definition."""

    id: str
    name: str
    description: str
    category: str
    trigger: dict[str, Any]
    actions: list[dict[str, Any]] = field(default_factory=list)

    def build_rule(self, owner_id: str, overrides: dict[str, Any] | None = None) -> Rule:
        """Instantiate the template as an unsaved rule for ``owner_id``."""
        values: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "trigger": deepcopy(self.trigger),
            "actions": deepcopy(self.actions),
            "enabled": True,
        }
        for key, value in (overrides or {}).items():
            if key in OVERRIDABLE_FIELDS and value is not None:
                values[key] = value

        return Rule(
            owner_id=owner_id,
            name=values["name"],
            description=values["description"],
            trigger=Trigger.model_validate(values["trigger"]),
            actions=[Action.model_validate(action) for action in values["actions"]],
            enabled=values["enabled"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "trigger": deepcopy(self.trigger),
            "actions": deepcopy(self.actions),
        }


def _email(subject: str, message: str, template: str) -> dict[str, Any]:
    return {
        "kind": "send_notification",
        "config": {
            "channel": "email",
            "to": "{{user_email}}",
            "subject": subject,
            "message": message,
            "template": template,
        },
    }


def _daily(cron: str) -> dict[str, Any]:
    return {"kind": "schedule", "conditions": {"cron": cron}}


_TEMPLATES = [
    RuleTemplate(
        id="medical_appointment_reminder",
        name="Medical Appointment Reminder",
        description="Sends reminders for medical appointments",
        category="health",
        trigger=_daily("0 9 * * *"),
        actions=[
            _email(
                "Upcoming Medical Appointment",
                "You have a medical appointment coming up. Please check your calendar for details.",
                "medical_reminder",
            ),
        ],
    ),
    RuleTemplate(
        id="doctor_appointment_detection",
        name="Doctor Appointment Detection",
        description="Detects doctor appointments in email and adds them to the calendar",
        category="health",
        trigger={
            "kind": "email",
            "conditions": {"patterns": ["appointment", "doctor", "medical", "physical", "checkup"]},
        },
        actions=[
            {
                "kind": "conditional",
                "config": {
                    "condition": {"type": "contains", "field": "email.subject", "value": "appointment"},
                    "trueActions": [
                        {
                            "kind": "create_calendar_entry",
                            "config": {
                                "title": "Medical Appointment - {{doctor_name}}",
                                "startDate": "{{appointment_date}}",
                                "endDate": "{{appointment_end_date}}",
                                "location": "{{doctor_address}}",
                                "description": "Medical appointment with {{doctor_name}}",
                            },
                        },
                        _email(
                            "Medical Appointment Scheduled",
                            "Your appointment with {{doctor_name}} on {{appointment_date}} was added to your calendar.",
                            "appointment_confirmation",
                        ),
                    ],
                },
            },
        ],
    ),
    RuleTemplate(
        id="meeting_reminder",
        name="Meeting Reminder",
        description="Sends a daily meeting overview",
        category="business",
        trigger=_daily("0 8 * * *"),
        actions=[_email("Daily Meeting Schedule", "Here are your meetings for today.", "meeting_reminder")],
    ),
    RuleTemplate(
        id="meeting_follow_up",
        name="Meeting Follow-up",
        description="Sends a follow-up email five minutes after a meeting ends",
        category="business",
        trigger={"kind": "calendar_event", "conditions": {"eventType": "meeting", "action": "ended"}},
        actions=[
            {"kind": "wait", "config": {"duration": 300000}},
            _email("Meeting Follow-up", "Thank you for the meeting. Here are the next steps.", "meeting_followup"),
        ],
    ),
    RuleTemplate(
        id="birthday_reminder",
        name="Birthday Reminder",
        description="Sends birthday reminders",
        category="personal",
        trigger=_daily("0 10 * * *"),
        actions=[_email("Birthday Reminders", "Don't forget these upcoming birthdays!", "birthday_reminder")],
    ),
    RuleTemplate(
        id="travel_preparation",
        name="Travel Preparation",
        description="Sends a checklist a week before travel",
        category="personal",
        trigger={"kind": "calendar_event", "conditions": {"eventType": "travel", "daysBefore": 7}},
        actions=[
            _email(
                "Travel Preparation Checklist",
                "Your trip is coming up! Here's your preparation checklist.",
                "travel_preparation",
            ),
        ],
    ),
    RuleTemplate(
        id="medication_reminder",
        name="Medication Reminder",
        description="Reminds three times a day to take medication",
        category="health",
        trigger=_daily("0 8,14,20 * * *"),
        actions=[_email("Medication Reminder", "Don't forget to take your medication.", "medication_reminder")],
    ),
    RuleTemplate(
        id="exercise_reminder",
        name="Exercise Reminder",
        description="Workout reminder on Monday, Wednesday and Friday evenings",
        category="health",
        trigger=_daily("0 18 * * 1,3,5"),
        actions=[_email("Exercise Time!", "Your scheduled workout time is here!", "exercise_reminder")],
    ),
    RuleTemplate(
        id="bill_reminder",
        name="Bill Reminder",
        description="Monthly bill payment reminder",
        category="finance",
        trigger=_daily("0 9 1 * *"),
        actions=[_email("Monthly Bill Reminder", "Don't forget to pay your monthly bills.", "bill_reminder")],
    ),
]

TEMPLATES: dict[str, RuleTemplate] = {template.id: template for template in _TEMPLATES}


def list_templates() -> list[RuleTemplate]:
    return list(TEMPLATES.values())


def get_template(template_id: str) -> RuleTemplate:
    """Look up a template.

    Raises:
        TemplateNotFoundError: If the id is not in the catalogue
    """
    template = TEMPLATES.get(template_id)
    if template is None:
        raise TemplateNotFoundError(template_id)
    return template
