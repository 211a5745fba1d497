"""Verification state machine: content lifecycle from draft to published.

State progression:
    draft -> pending_review -> {verified, changes_requested}
    changes_requested -> pending_review          (resubmission)
    verified -> published
    verified | published -> pending_review       (an edit invalidates sign-off)
    any state except published -> rejected       (terminal withdrawal)

Every mutation holds the record's key lock for the whole check-then-act
sequence, collaborator calls included, so two concurrent publishes cannot
both pass the ``verified`` precondition.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pydantic
import structlog

from edgate.content.models import (
    AccessRequirement,
    ContentFilter,
    ContentMetadata,
    ContentRecord,
    ContentUpdate,
    LedgerRecord,
    VerificationAction,
    VerificationDecision,
    VerificationStatus,
    requirements_adapter,
)
from edgate.content.repository import ContentRepository
from edgate.errors import (
    ConflictError,
    ExternalServiceError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from edgate.integrations.base import call_collaborator
from edgate.integrations.blob_storage import BlobStorage, is_content_addressed
from edgate.integrations.ledger import (
    CONTENT_METADATA_LABEL,
    CONTENT_POLICY_ID,
    LedgerClient,
    build_onchain_metadata,
    encode_onchain_metadata,
)
from edgate.locks import KeyedLock, content_key

logger = structlog.get_logger()

S = VerificationStatus

VALID_TRANSITIONS: dict[VerificationStatus, list[VerificationStatus]] = {
    S.DRAFT: [S.PENDING_REVIEW, S.REJECTED],
    S.PENDING_REVIEW: [S.VERIFIED, S.CHANGES_REQUESTED, S.REJECTED],
    S.CHANGES_REQUESTED: [S.PENDING_REVIEW, S.REJECTED],
    S.VERIFIED: [S.PUBLISHED, S.PENDING_REVIEW, S.REJECTED],
    S.PUBLISHED: [S.PENDING_REVIEW],
    S.REJECTED: [],
}

_SUBMITTABLE = frozenset({S.DRAFT, S.CHANGES_REQUESTED})
_SIGNED_OFF = frozenset({S.VERIFIED, S.PUBLISHED})

SYSTEM_ACTOR = "system"


def validate_transition(current: VerificationStatus, target: VerificationStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the table."""
    if target not in VALID_TRANSITIONS.get(current, []):
        raise InvalidTransitionError(current.value, target.value)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _invalid(message: str, exc: pydantic.ValidationError) -> ValidationError:
    errors = [
        {"loc": list(err["loc"]), "msg": err["msg"]}
        for err in exc.errors(include_url=False)
    ]
    return ValidationError(message, errors=errors)


def _parse_metadata(metadata: ContentMetadata | dict[str, Any] | None) -> ContentMetadata:
    if metadata is None:
        raise ValidationError("metadata is required")
    raw = metadata.model_dump() if isinstance(metadata, ContentMetadata) else metadata
    try:
        return ContentMetadata.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise _invalid("Invalid content metadata", exc) from exc


def _parse_requirements(requirements: list[AccessRequirement] | list[dict[str, Any]] | None) -> list[AccessRequirement]:
    if not requirements:
        return []
    raw = [r.model_dump() if isinstance(r, pydantic.BaseModel) else r for r in requirements]
    try:
        return requirements_adapter.validate_python(raw)
    except pydantic.ValidationError as exc:
        raise _invalid("Invalid access requirements", exc) from exc


def _parse_update(updates: ContentUpdate | dict[str, Any]) -> ContentUpdate:
    if isinstance(updates, ContentUpdate):
        return updates
    try:
        return ContentUpdate.model_validate(updates)
    except pydantic.ValidationError as exc:
        raise _invalid("Invalid content update", exc) from exc


def _require_text(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)


def build_payload_bundle(record: ContentRecord) -> bytes:
    """JSON document uploaded to blob storage when content is published."""
    bundle = {
        "id": record.id,
        "metadata": record.metadata.model_dump(mode="json"),
        "content": {"type": record.metadata.kind.value, "url": record.payload_location},
        "thumbnail": record.thumbnail_location,
        "accessRequirements": [r.model_dump(mode="json") for r in record.access_requirements],
        "moduleId": record.module_id,
        "contentOrder": record.order_in_module,
        "verificationRecords": [
            {
                "verifierId": d.reviewer_id,
                "verifiedAt": d.decided_at.isoformat(),
                "fingerprint": d.fingerprint,
            }
            for d in record.history
            if d.action == VerificationAction.APPROVED
        ],
    }
    return json.dumps(bundle, sort_keys=True).encode("utf-8")


class VerificationService:
    """Drives content records through review and publication."""

    def __init__(
        self,
        repository: ContentRepository,
        blobs: BlobStorage,
        ledger: LedgerClient,
        locks: KeyedLock,
    ) -> None:
        self._repository = repository
        self._blobs = blobs
        self._ledger = ledger
        self._locks = locks

    # --- Reads ---

    async def get(self, content_id: str) -> ContentRecord:
        record = await self._repository.get(content_id)
        if record is None:
            raise NotFoundError(f"Content {content_id} not found", content_id=content_id)
        return record

    async def list(self, content_filter: ContentFilter | None = None) -> list[ContentRecord]:
        return await self._repository.list(content_filter)

    async def payload_url(self, content_id: str) -> str:
        """Where a client can fetch the payload from."""
        record = await self.get(content_id)
        if not is_content_addressed(record.payload_location):
            return record.payload_location
        return await call_collaborator(
            "blob_storage", "resolve", self._blobs.resolve(record.payload_location)
        )

    # --- Lifecycle ---

    async def create(
        self,
        metadata: ContentMetadata | dict[str, Any] | None,
        payload_location: str,
        thumbnail_location: str,
        requirements: list[AccessRequirement] | list[dict[str, Any]] | None,
        module_id: str,
        order_in_module: int,
        creator_id: str,
    ) -> ContentRecord:
        """Create a new record in ``draft`` with an empty history."""
        parsed = _parse_metadata(metadata)
        _require_text(
            payload_location=payload_location,
            thumbnail_location=thumbnail_location,
            module_id=module_id,
            creator_id=creator_id,
        )
        if order_in_module < 0:
            raise ValidationError("order_in_module must be >= 0", fields=["order_in_module"])

        now = _now()
        record = ContentRecord(
            id=str(uuid4()),
            metadata=parsed.model_copy(update={"created_at": now, "updated_at": now}),
            payload_location=payload_location,
            thumbnail_location=thumbnail_location,
            access_requirements=_parse_requirements(requirements),
            module_id=module_id,
            order_in_module=order_in_module,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        stored = await self._repository.add(record)
        logger.info("content_created", content_id=stored.id, creator_id=creator_id, module_id=module_id)
        return stored

    async def submit_for_review(self, content_id: str, actor_id: str | None = None) -> ContentRecord:
        """draft | changes_requested -> pending_review."""
        async with self._locks.hold(content_key(content_id)):
            record = await self.get(content_id)
            if record.status not in _SUBMITTABLE:
                raise InvalidTransitionError(record.status.value, S.PENDING_REVIEW.value)
            return await self._transition(
                record, S.PENDING_REVIEW, VerificationAction.SUBMITTED, actor_id or record.creator_id
            )

    async def record_decision(
        self,
        content_id: str,
        reviewer_id: str,
        approved: bool,
        comments: str | None = None,
    ) -> ContentRecord:
        """pending_review -> verified (approved) or changes_requested."""
        _require_text(reviewer_id=reviewer_id)
        target = S.VERIFIED if approved else S.CHANGES_REQUESTED
        action = VerificationAction.APPROVED if approved else VerificationAction.CHANGES_REQUESTED
        async with self._locks.hold(content_key(content_id)):
            record = await self.get(content_id)
            if record.status != S.PENDING_REVIEW:
                raise InvalidTransitionError(record.status.value, target.value)
            updated = await self._transition(record, target, action, reviewer_id, comments=comments)
        logger.info("content_reviewed", content_id=content_id, reviewer_id=reviewer_id, approved=approved)
        return updated

    async def reject(self, content_id: str, reviewer_id: str, comments: str) -> ContentRecord:
        """Withdraw content outright. Terminal: rejected content cannot be resubmitted."""
        _require_text(reviewer_id=reviewer_id, comments=comments)
        async with self._locks.hold(content_key(content_id)):
            record = await self.get(content_id)
            updated = await self._transition(
                record, S.REJECTED, VerificationAction.REJECTED, reviewer_id, comments=comments
            )
        logger.info("content_rejected", content_id=content_id, reviewer_id=reviewer_id)
        return updated

    async def edit(
        self,
        content_id: str,
        updates: ContentUpdate | dict[str, Any],
        editor_id: str | None = None,
    ) -> ContentRecord:
        """Apply changes. Edits to verified or published content send it back to review."""
        update = _parse_update(updates)
        if update.is_empty():
            raise ValidationError("No changes supplied")
        requirements = (
            _parse_requirements(update.access_requirements)
            if update.access_requirements is not None
            else None
        )

        async with self._locks.hold(content_key(content_id)):
            record = await self.get(content_id)
            if record.status == S.REJECTED:
                raise PreconditionFailedError(
                    "Rejected content cannot be edited; create new content instead",
                    content_id=content_id,
                    status=record.status.value,
                )

            now = _now()
            changes: dict[str, Any] = {"updated_at": now}
            if update.metadata is not None:
                merged = {
                    **record.metadata.model_dump(),
                    **update.metadata,
                    "created_at": record.metadata.created_at,
                    "updated_at": now,
                }
                changes["metadata"] = _parse_metadata(merged)
            for field in ("payload_location", "thumbnail_location", "module_id", "order_in_module"):
                value = getattr(update, field)
                if value is not None:
                    changes[field] = value
            if requirements is not None:
                changes["access_requirements"] = requirements

            if record.status not in _SIGNED_OFF:
                return await self._save(record.model_copy(update=changes))

            if record.status == S.PUBLISHED:
                changes["previous_ledger_records"] = [*record.previous_ledger_records, record.ledger_record]
                changes["ledger_record"] = None
                changes["published_at"] = None
            updated = await self._transition(
                record.model_copy(update=changes),
                S.PENDING_REVIEW,
                VerificationAction.INVALIDATED,
                editor_id or record.creator_id,
                comments="Edited after sign-off",
            )
        logger.info("content_signoff_invalidated", content_id=content_id, previous_status=record.status.value)
        return updated

    async def publish(self, content_id: str, publisher_id: str | None = None) -> ContentRecord:
        """Upload the payload, anchor metadata on the ledger, then mark published.

        All-or-nothing: unless both collaborator steps succeed the stored
        record is left exactly as it was. The raised ExternalServiceError names
        the failing ``service`` and ``operation``.
        """
        async with self._locks.hold(content_key(content_id)):
            record = await self.get(content_id)
            if record.status != S.VERIFIED:
                raise PreconditionFailedError(
                    f"Content must be verified before publishing (status: {record.status.value})",
                    content_id=content_id,
                    status=record.status.value,
                )

            payload_address = record.payload_location
            try:
                if not is_content_addressed(payload_address):
                    payload_address = await call_collaborator(
                        "blob_storage", "upload", self._blobs.upload(build_payload_bundle(record))
                    )
                    await self._pin(payload_address)

                onchain = build_onchain_metadata(record, payload_address)
                receipt = await call_collaborator(
                    "ledger", "store_metadata", self._ledger.store_metadata(record.id, onchain)
                )
            except ExternalServiceError as exc:
                logger.warning(
                    "publish_failed",
                    content_id=content_id,
                    service=exc.service,
                    operation=exc.operation,
                    retryable=exc.retryable,
                    error=exc.message,
                )
                raise

            ledger_record = LedgerRecord(
                id=f"{record.id}-{receipt.transaction_ref}",
                content_id=record.id,
                transaction_ref=receipt.transaction_ref,
                metadata_label=CONTENT_METADATA_LABEL,
                metadata_json=encode_onchain_metadata(onchain),
                payload_address=payload_address,
                recorded_at=receipt.timestamp,
                block_height=receipt.block_height,
                policy_id=CONTENT_POLICY_ID,
                asset_name=record.id,
            )
            try:
                published = await self._transition(
                    record,
                    S.PUBLISHED,
                    VerificationAction.PUBLISHED,
                    publisher_id or SYSTEM_ACTOR,
                    payload_location=payload_address,
                    ledger_record=ledger_record,
                    published_at=_now(),
                )
            except ConflictError:
                # Ledger already holds the metadata; operators reconcile by transaction_ref.
                logger.error(
                    "publish_commit_conflict",
                    content_id=content_id,
                    transaction_ref=receipt.transaction_ref,
                )
                raise

        logger.info(
            "content_published",
            content_id=content_id,
            transaction_ref=receipt.transaction_ref,
            payload_address=payload_address,
        )
        return published

    # --- Internals ---

    async def _pin(self, address: str) -> None:
        try:
            pinned = await call_collaborator("blob_storage", "pin", self._blobs.pin(address))
        except ExternalServiceError as exc:
            logger.warning("payload_pin_failed", payload_address=address, error=exc.message)
            return
        if not pinned:
            logger.warning("payload_pin_declined", payload_address=address)

    async def _transition(
        self,
        record: ContentRecord,
        target: VerificationStatus,
        action: VerificationAction,
        actor_id: str,
        comments: str | None = None,
        **changes: Any,  # noqa: ANN401
    ) -> ContentRecord:
        validate_transition(record.status, target)
        now = _now()
        decision = VerificationDecision.record(
            content_id=record.id,
            reviewer_id=actor_id,
            action=action,
            status=target,
            decided_at=now,
            comments=comments,
        )
        updated = record.model_copy(
            update={
                "status": target,
                "history": [*record.history, decision],
                "updated_at": now,
                **changes,
            }
        )
        return await self._save(updated)

    async def _save(self, record: ContentRecord) -> ContentRecord:
        record.check_invariants()
        return await self._repository.update(record)
