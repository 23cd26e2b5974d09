import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docbox.audit.service import record_audit
from docbox.auth.models import User
from docbox.boxes.models import Box
from docbox.boxes.storage import StorageBackend
from docbox.config import Settings
from docbox.core.exceptions import NotFoundError, ValidationError
from docbox.dependencies import OrgContext
from docbox.export import builders
from docbox.export.models import ExportHistory, ExportProfile, ExportType
from docbox.export.profiles import FORMAT_DESCRIPTIONS, PROFILE_COLUMNS, ExportFormat, sheet_name_for
from docbox.export.schemas import (
    ExcelExportRequest,
    ExportProfileCreate,
    ExportProfileUpdate,
    ZipExportRequest,
)

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _timestamp(now: datetime) -> str:
    return now.strftime("%Y%m%d_%H%M%S")


async def _load_boxes(
    db: AsyncSession, organization_id: uuid.UUID, box_ids: list[uuid.UUID], settings: Settings
) -> list[Box]:
    if len(box_ids) > settings.export_max_boxes:
        raise ValidationError(f"At most {settings.export_max_boxes} boxes can be exported at once.")
    result = await db.execute(
        select(Box)
        .where(Box.organization_id == organization_id, Box.id.in_(box_ids))
        .order_by(Box.box_date.asc(), Box.box_number.asc())
    )
    boxes = list(result.scalars().all())
    if not boxes:
        raise ValidationError("No boxes found to export.")
    return boxes


async def _creator_names(db: AsyncSession, boxes: list[Box]) -> dict[uuid.UUID, str]:
    user_ids = {box.created_by for box in boxes if box.created_by is not None}
    if not user_ids:
        return {}
    result = await db.execute(select(User.id, User.full_name, User.email).where(User.id.in_(user_ids)))
    return {user_id: full_name or email for user_id, full_name, email in result.all()}


async def _record_export(
    db: AsyncSession,
    ctx: OrgContext,
    boxes: list[Box],
    export_type: ExportType,
    profile: str | None,
    file_name: str,
    now: datetime,
) -> ExportHistory:
    box_ids = [box.id for box in boxes]
    await db.execute(update(Box).where(Box.id.in_(box_ids)).values(exported_at=now))

    history = ExportHistory(
        id=uuid.uuid4(),
        organization_id=ctx.organization_id,
        export_type=export_type,
        profile=profile,
        file_name=file_name,
        box_ids=[str(box_id) for box_id in box_ids],
        box_count=len(boxes),
        exported_by=ctx.user_id,
    )
    db.add(history)
    record_audit(
        db,
        organization_id=ctx.organization_id,
        user_id=ctx.user_id,
        action="BOXES_EXPORTED",
        resource_type="export",
        resource_id=history.id,
        details={"export_type": export_type.value, "profile": profile, "box_count": len(boxes)},
    )
    await db.commit()
    logger.info(
        "Organization %s exported %d boxes as %s (%s)",
        ctx.organization_id, len(boxes), export_type.value, profile or "-",
    )
    return history


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------


def list_formats() -> list[dict]:
    return FORMAT_DESCRIPTIONS


async def export_excel(
    db: AsyncSession, ctx: OrgContext, data: ExcelExportRequest, settings: Settings
) -> tuple[str, bytes]:
    """Build an XLSX for the selected boxes using a built-in or saved column layout."""
    if data.profile_id is not None:
        custom = await get_profile(db, ctx.organization_id, data.profile_id)
        columns = custom.column_map()
        profile_label = custom.name
        sheet_title = custom.name
        file_tag = "custom"
    else:
        columns = PROFILE_COLUMNS[data.profile]
        profile_label = data.profile.value
        sheet_title = sheet_name_for(data.profile)
        file_tag = data.profile.value.lower()

    boxes = await _load_boxes(db, ctx.organization_id, data.box_ids, settings)
    creators = await _creator_names(db, boxes)
    content = builders.boxes_to_workbook(boxes, columns, sheet_title, creators)

    now = datetime.now(timezone.utc)
    file_name = f"export_{file_tag}_{_timestamp(now)}.xlsx"
    await _record_export(db, ctx, boxes, ExportType.EXCEL, profile_label, file_name, now)
    return file_name, content


async def export_zip(
    db: AsyncSession,
    ctx: OrgContext,
    data: ZipExportRequest,
    storage: StorageBackend,
    settings: Settings,
) -> tuple[str, bytes]:
    boxes = await _load_boxes(db, ctx.organization_id, data.box_ids, settings)
    creators = await _creator_names(db, boxes)
    content, skipped = await builders.build_zip_bundle(
        boxes, storage, creators, include_json=data.include_json, group_by_month=data.group_by_month
    )
    if skipped:
        logger.warning("ZIP export for organization %s skipped %d files", ctx.organization_id, skipped)

    now = datetime.now(timezone.utc)
    file_name = f"export_bundle_{_timestamp(now)}.zip"
    await _record_export(db, ctx, boxes, ExportType.ZIP, ExportFormat.GENERIC.value, file_name, now)
    return file_name, content


async def list_history(db: AsyncSession, organization_id: uuid.UUID, limit: int) -> list[ExportHistory]:
    result = await db.execute(
        select(ExportHistory)
        .where(ExportHistory.organization_id == organization_id)
        .order_by(ExportHistory.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Custom profiles
# ---------------------------------------------------------------------------


async def list_profiles(db: AsyncSession, organization_id: uuid.UUID) -> list[ExportProfile]:
    result = await db.execute(
        select(ExportProfile)
        .where(ExportProfile.organization_id == organization_id)
        .order_by(ExportProfile.is_default.desc(), ExportProfile.name)
    )
    return list(result.scalars().all())


async def get_profile(db: AsyncSession, organization_id: uuid.UUID, profile_id: uuid.UUID) -> ExportProfile:
    profile = await db.get(ExportProfile, profile_id)
    if profile is None or profile.organization_id != organization_id:
        raise NotFoundError("Export profile", str(profile_id))
    return profile


async def _clear_default(db: AsyncSession, organization_id: uuid.UUID) -> None:
    await db.execute(
        update(ExportProfile)
        .where(ExportProfile.organization_id == organization_id)
        .values(is_default=False)
    )


async def create_profile(db: AsyncSession, ctx: OrgContext, data: ExportProfileCreate) -> ExportProfile:
    if data.is_default:
        await _clear_default(db, ctx.organization_id)
    profile = ExportProfile(
        organization_id=ctx.organization_id,
        name=data.name,
        description=data.description,
        columns=[col.model_dump() for col in data.columns],
        is_default=data.is_default,
        created_by=ctx.user_id,
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def update_profile(
    db: AsyncSession, ctx: OrgContext, profile_id: uuid.UUID, data: ExportProfileUpdate
) -> ExportProfile:
    profile = await get_profile(db, ctx.organization_id, profile_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("is_default"):
        await _clear_default(db, ctx.organization_id)
    for key, value in update_data.items():
        if value is None and key in ("name", "columns", "is_default"):
            continue
        setattr(profile, key, value)

    await db.commit()
    await db.refresh(profile)
    return profile


async def delete_profile(db: AsyncSession, ctx: OrgContext, profile_id: uuid.UUID) -> None:
    profile = await get_profile(db, ctx.organization_id, profile_id)
    await db.delete(profile)
    await db.commit()
