"""
Identity consolidation.

Each call runs Lookup -> Cluster Analysis -> Merge Resolution (when two or
more primaries are touched) -> Gap-Fill, and returns the aggregated view of
the resulting cluster. The store is passed in; nothing is kept between calls.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from contact_store import ContactStore
from db_models import Contact, ContactResponse, LinkPrecedence
from errors import IntegrityFault

logger = logging.getLogger(__name__)


def touched_primaries(contacts: Iterable[Contact]) -> List[Contact]:
    """Distinct primaries reached by the matched rows, in first-seen order."""
    primaries: Dict[int, Contact] = {}
    dangling = []

    for contact in contacts:
        if contact.linkPrecedence == LinkPrecedence.PRIMARY:
            primaries.setdefault(contact.id, contact)
            continue

        linked = contact.linkedContact
        if linked is None or linked.linkPrecedence != LinkPrecedence.PRIMARY:
            dangling.append(contact.id)
            continue
        primaries.setdefault(linked.id, linked)

    if dangling:
        raise IntegrityFault(
            "Primary contact not found for linked contacts",
            meta={"contactIds": dangling},
        )
    return list(primaries.values())


def pick_survivor(primaries: List[Contact]) -> Tuple[Contact, List[Contact]]:
    """Oldest primary survives; equal createdAt falls back to the lower id."""
    earliest = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(primaries, key=lambda c: (c.createdAt is None, c.createdAt or earliest, c.id))
    return ordered[0], ordered[1:]


def merge_clusters(
    store: ContactStore,
    survivor: Contact,
    demoted: List[Contact],
    secondaries: List[Contact],
    now: datetime,
) -> List[Contact]:
    """Demote the younger primaries and point every member at the survivor.

    Returns the survivor's secondaries after the merge: previously linked
    contacts in retrieval order followed by the demoted primaries.
    """
    relink_ids = [c.id for c in secondaries if c.linkedId != survivor.id]
    demoted_ids = [c.id for c in demoted]

    store.bulk_update(demoted_ids + relink_ids, LinkPrecedence.SECONDARY, survivor.id, now)
    logger.info(
        "Merged clusters into primary %s: demoted %s, relinked %s",
        survivor.id, demoted_ids, relink_ids,
    )

    changes = {"linkPrecedence": LinkPrecedence.SECONDARY, "linkedId": survivor.id, "updatedAt": now}
    merged = [c.model_copy(update=changes) if c.id in relink_ids else c for c in secondaries]
    merged.extend(c.model_copy(update=changes) for c in demoted)
    return merged


def build_response(primary: Contact, secondaries: List[Contact]) -> ContactResponse:
    members = [primary] + secondaries
    # dict keys keep insertion order, so the primary's values come first
    emails = dict.fromkeys(c.email for c in members if c.email)
    phone_numbers = dict.fromkeys(c.phoneNumber for c in members if c.phoneNumber)

    return ContactResponse(
        primaryContactId=primary.id,
        emails=list(emails),
        phoneNumbers=list(phone_numbers),
        secondaryContactIds=[c.id for c in secondaries],
    )


def identify(store: ContactStore, email: Optional[str] = None, phone: Optional[str] = None) -> ContactResponse:
    now = datetime.now(timezone.utc)

    contacts = store.find_by_email_or_phone(email, phone)
    logger.debug("Lookup matched %d contacts", len(contacts))

    if not contacts:
        contact_id = store.insert(email, phone, LinkPrecedence.PRIMARY, created_at=now)
        logger.info("Created primary contact %s", contact_id)
        primary = Contact(
            id=contact_id,
            email=email,
            phoneNumber=phone,
            linkPrecedence=LinkPrecedence.PRIMARY,
            createdAt=now,
            updatedAt=now,
        )
        return build_response(primary, [])

    primaries = touched_primaries(contacts)

    survivor, demoted = pick_survivor(primaries)
    secondaries = store.find_by_linked_id_in(c.id for c in primaries)

    if demoted:
        secondaries = merge_clusters(store, survivor, demoted, secondaries, now)

    members = [survivor] + secondaries
    email_found = email is None or any(c.email == email for c in members)
    phone_found = phone is None or any(c.phoneNumber == phone for c in members)

    if not (email_found and phone_found):
        contact_id = store.insert(email, phone, LinkPrecedence.SECONDARY, survivor.id, created_at=now)
        logger.info("Created secondary contact %s linked to %s", contact_id, survivor.id)
        secondaries.append(Contact(
            id=contact_id,
            email=email,
            phoneNumber=phone,
            linkedId=survivor.id,
            linkPrecedence=LinkPrecedence.SECONDARY,
            createdAt=now,
            updatedAt=now,
        ))

    return build_response(survivor, secondaries)
