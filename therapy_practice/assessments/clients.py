"""
Client Directory

The subset of the client directory the assessment engine depends on: looking
up a therapist's clients and registering respondents of public links.
"""

from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from therapy_practice.common.db.session import transaction
from therapy_practice.common.error_handling import NotFoundError, ValidationError
from therapy_practice.common.logger import app_logger
from therapy_practice.assessments.database_models import Client
from therapy_practice.assessments.models import ClientStatus

logger = app_logger.getChild("assessments.clients")


class ClientDirectory:
    """Lookups and registration of a therapist's clients."""

    def __init__(self, session: Session):
        self.session = session

    def get_client(self, therapist_id: str, client_id: str) -> Client:
        """
        Raises:
            NotFoundError: If the client does not exist or belongs to someone else
        """
        client = self.session.get(Client, client_id)
        if client is None or client.therapist_id != therapist_id:
            raise NotFoundError("Client", client_id)
        return client

    def get_clients(self, therapist_id: str, client_ids: Iterable[str]) -> List[Client]:
        """
        Load several clients in the given order.

        Raises:
            NotFoundError: For the first id that is not one of the therapist's clients
        """
        client_ids = list(client_ids)
        found = {
            client.id: client
            for client in self.session.query(Client).filter(
                Client.id.in_(client_ids),
                Client.therapist_id == therapist_id
            )
        }
        for client_id in client_ids:
            if client_id not in found:
                raise NotFoundError("Client", client_id)
        return [found[client_id] for client_id in client_ids]

    def list_clients(self, therapist_id: str) -> List[Client]:
        return (
            self.session.query(Client)
            .filter(Client.therapist_id == therapist_id)
            .order_by(Client.full_name)
            .all()
        )

    def create_client(self, therapist_id: str, full_name: str, email: Optional[str] = None) -> Client:
        """Add a client without committing."""
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValidationError("Client name is required", details={"client_name": "must not be empty"})

        client = Client(
            therapist_id=therapist_id,
            full_name=full_name,
            email=(email or "").strip().lower() or None,
            status=ClientStatus.ACTIVE.value
        )
        self.session.add(client)
        self.session.flush()
        logger.info(f"Registered client {client.id} for therapist {therapist_id}")
        return client

    def find_by_email(self, therapist_id: str, email: Optional[str]) -> Optional[Client]:
        """
        The therapist's oldest client with this email, compared case
        insensitively. Respondents without an email never match.
        """
        email = (email or "").strip().lower()
        if not email:
            return None
        return (
            self.session.query(Client)
            .filter(Client.therapist_id == therapist_id, func.lower(Client.email) == email)
            .order_by(Client.created_at)
            .first()
        )

    def register_client(self, therapist_id: str, full_name: str, email: Optional[str] = None) -> Client:
        """Create a client and commit it."""
        with transaction(self.session):
            client = self.create_client(therapist_id, full_name, email)
        return client
