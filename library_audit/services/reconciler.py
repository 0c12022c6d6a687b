"""Compare the local inventory with the remote catalog."""

import structlog

from ..models import (
    CompletionMetric,
    IncompleteDLC,
    IncompleteUpdate,
    LocalInventory,
    MissingDLC,
    RemoteCatalog,
)

log = structlog.stdlib.get_logger()


def compute_completion(local: LocalInventory, remote: RemoteCatalog) -> CompletionMetric:
    """Count how many catalog titles are present locally."""
    owned = sum(1 for title_id in local.titles if title_id in remote.titles)
    return CompletionMetric(owned=owned, total=len(remote.titles), local_titles=len(local.titles))


def diff_updates(local: LocalInventory, remote: RemoteCatalog) -> list[IncompleteUpdate]:
    """Find owned titles whose installed version is older than the latest release.

    Titles missing from either side, titles whose local version cannot be
    determined, and titles never updated upstream produce no record.
    """
    result = []
    for title_id, match in local.titles.items():
        title = remote.titles.get(title_id)
        if title is None:
            continue
        latest = title.latest
        local_version = match.local_version
        if latest is None or local_version is None:
            continue
        if local_version < latest.version:
            result.append(IncompleteUpdate(
                title_id=title_id,
                name=title.name,
                local_version=local_version,
                latest_version=latest.version,
                latest_release_date=latest.release_date,
            ))

    result.sort(key=lambda r: (r.name.lower(), r.title_id))
    log.info("Missing update scan finished", incomplete=len(result))
    return result


def diff_dlc(local: LocalInventory, remote: RemoteCatalog) -> list[IncompleteDLC]:
    """Find owned titles missing DLC listed in the catalog."""
    result = []
    for title_id, match in local.titles.items():
        title = remote.titles.get(title_id)
        if title is None:
            continue
        missing_ids = set(title.dlc) - match.dlc_ids
        if not missing_ids:
            continue
        result.append(IncompleteDLC(
            title_id=title_id,
            name=title.name,
            missing=tuple(MissingDLC(id=dlc_id, name=title.dlc[dlc_id]) for dlc_id in sorted(missing_ids)),
        ))

    result.sort(key=lambda r: (r.name.lower(), r.title_id))
    log.info("Missing DLC scan finished", incomplete=len(result))
    return result
