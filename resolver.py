"""
Identity reconciliation.

Collapses contacts that share an email or phone number into one cluster with a
single primary (the oldest contact) and flat secondary links to it.
"""
import logging
from typing import List, Optional, Tuple

from db_models import Contact, ContactResponse, LinkPrecedence
from errors import InvalidRequest

logger = logging.getLogger(__name__)


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _seniority(contact: Contact):
    return (contact.createdAt, contact.id)


def _append_unique(values: List[str], value: Optional[str]):
    if value and value not in values:
        values.append(value)


def build_identity_view(primary_id: int, cluster: List[Contact]) -> ContactResponse:
    """
    Assemble the consolidated identity for a cluster.

    The primary's own email and phone come first, followed by every other
    distinct value in cluster order.

    Args:
        primary_id: Id of the cluster primary
        cluster: Primary plus its secondaries, oldest first

    Returns:
        Deduplicated identity view
    """
    emails: List[str] = []
    phone_numbers: List[str] = []
    secondary_ids: List[int] = []

    primary = next((c for c in cluster if c.id == primary_id), None)
    if primary is not None:
        _append_unique(emails, primary.email)
        _append_unique(phone_numbers, primary.phoneNumber)

    for contact in cluster:
        _append_unique(emails, contact.email)
        _append_unique(phone_numbers, contact.phoneNumber)
        if contact.id != primary_id and contact.linkPrecedence == LinkPrecedence.SECONDARY:
            secondary_ids.append(contact.id)

    return ContactResponse(
        primaryContactId=primary_id,
        emails=emails,
        phoneNumbers=phone_numbers,
        secondaryContactIds=secondary_ids
    )


def has_new_information(cluster: List[Contact], email: Optional[str], phone: Optional[str]) -> bool:
    known_emails = {c.email for c in cluster if c.email}
    known_phones = {c.phoneNumber for c in cluster if c.phoneNumber}
    return bool(email and email not in known_emails) or bool(phone and phone not in known_phones)


class IdentityResolver:
    """Resolves a partial identifier to its consolidated identity."""

    def __init__(self, store):
        self.store = store

    def resolve(self, email: Optional[str] = None, phone_number: Optional[str] = None) -> ContactResponse:
        """
        Find or create the identity for an email and/or phone number.

        Merges clusters the identifier connects and records any new email or
        phone as a secondary contact. Runs as one store transaction.

        Raises:
            InvalidRequest: neither an email nor a phone number was given
            StorageFailure: the store failed; nothing was written
        """
        email = _normalize(email)
        phone = _normalize(phone_number)

        if not email and not phone:
            raise InvalidRequest("Either email or phoneNumber must be provided")

        with self.store.transaction() as session:
            return self._resolve(session, email, phone)

    def _resolve(self, session, email: Optional[str], phone: Optional[str]) -> ContactResponse:
        candidates = session.find_by_email_or_phone(email, phone)
        logger.debug(f"Found {len(candidates)} candidate contacts")

        if not candidates:
            contact = session.create(email, phone, LinkPrecedence.PRIMARY)
            logger.info(f"Created primary contact {contact.id}")
            return ContactResponse(
                primaryContactId=contact.id,
                emails=[email] if email else [],
                phoneNumbers=[phone] if phone else [],
                secondaryContactIds=[]
            )

        roots, chained, dead_links = self._cluster_roots(session, candidates)
        winner = roots[0]

        if not winner.is_primary:
            session.promote(winner.id)
            logger.warning(f"Promoted orphaned contact {winner.id} to primary")

        for loser in roots[1:]:
            moved = session.relink_secondaries(loser.id, winner.id)
            session.relink(loser.id, winner.id)
            logger.info(
                f"Merged cluster {loser.id} into {winner.id} ({moved} secondaries relinked)"
            )

        for contact in chained:
            session.relink(contact.id, winner.id)
            logger.warning(f"Flattened chained contact {contact.id} onto {winner.id}")

        # siblings still pointing at a deleted or missing primary join the winner
        for dead_id in dead_links:
            if dead_id != winner.id:
                moved = session.relink_secondaries(dead_id, winner.id)
                if moved:
                    logger.warning(f"Adopted {moved} contacts orphaned from {dead_id} into {winner.id}")

        cluster = session.find_cluster(winner.id)
        if has_new_information(cluster, email, phone):
            contact = session.create(email, phone, LinkPrecedence.SECONDARY, winner.id)
            logger.info(f"Created secondary contact {contact.id} linked to {winner.id}")

        cluster = session.find_cluster(winner.id)
        return build_identity_view(winner.id, cluster)

    def _cluster_roots(self, session, candidates: List[Contact]) -> Tuple[List[Contact], List[Contact], List[int]]:
        """
        Collect the root of every cluster the candidates belong to.

        A matched secondary stands for its cluster, so its primary is looked up
        even when the primary itself did not match. A secondary whose link
        leads nowhere (deleted, missing or circular) is the root of its own
        cluster and competes on seniority like any primary.

        Returns:
            (roots oldest first, secondaries not linked directly to their root,
            dangling link targets)
        """
        roots = {}
        chained = {}
        dead_links = []
        for contact in candidates:
            root, path, dead_id = self._find_root(session, contact)
            roots.setdefault(root.id, root)
            for link in path:
                if link.linkedId != root.id:
                    chained.setdefault(link.id, link)
            if dead_id is not None and dead_id not in dead_links:
                dead_links.append(dead_id)

        return sorted(roots.values(), key=_seniority), list(chained.values()), dead_links

    def _find_root(self, session, contact: Contact):
        path = []
        seen = {contact.id}
        while not contact.is_primary:
            parent = None
            if contact.linkedId is not None and contact.linkedId not in seen:
                parent = session.get(contact.linkedId)
            if parent is None:
                return contact, path, contact.linkedId
            path.append(contact)
            seen.add(parent.id)
            contact = parent
        return contact, path, None
