# backend/wc_core/compliance/frameworks.py
from django.db import models


class ComplianceFramework(models.TextChoices):
    GDPR = "GDPR", "UK GDPR"
    CQC = "CQC", "Care Quality Commission"
    HIPAA = "HIPAA", "HIPAA"
    NHS_DSPT = "NHS_DSPT", "NHS Data Security and Protection Toolkit"


# Resource categories that hold personal / health information about residents.
PERSONAL_DATA_RESOURCES = frozenset(
    {
        "Resident",
        "CarePlan",
        "CareUpdate",
        "Medication",
        "Consent",
        "HealthRecord",
        "Incident",
        "FamilyMessage",
    }
)

PHI_RESOURCES = PERSONAL_DATA_RESOURCES - {"FamilyMessage"}

CONFIGURATION_RESOURCE = "SystemConfiguration"
