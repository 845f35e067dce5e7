from .auth import AuthClient
from .base import BaseClient, SubmissionGateway
from .donations_client import DonationsClient
from .housing_requests_client import HousingRequestsClient
from .logements_client import LogementsClient

__all__ = [
    "AuthClient",
    "BaseClient",
    "DonationsClient",
    "HousingRequestsClient",
    "LogementsClient",
    "SubmissionGateway",
]
