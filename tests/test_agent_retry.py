#!/usr/bin/env python3
"""Tests for waiting on the sync folder."""
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from tenacity import wait_none

from fclipsync.agent_retry import SyncFolderUnavailable, check_sync_folder, wait_for_sync_folder


@pytest.mark.asyncio
async def test_check_accepts_directory(tmp_path: Path) -> None:
    await check_sync_folder(tmp_path)


@pytest.mark.asyncio
async def test_check_rejects_missing_folder(tmp_path: Path) -> None:
    with pytest.raises(SyncFolderUnavailable):
        await check_sync_folder(tmp_path / "missing")


@pytest.mark.asyncio
async def test_check_rejects_regular_file(tmp_path: Path) -> None:
    path = tmp_path / "file"
    path.write_text("")
    with pytest.raises(SyncFolderUnavailable):
        await check_sync_folder(path)


@pytest.mark.asyncio
async def test_wait_retries_until_folder_appears(tmp_path: Path) -> None:
    """Test wait_for_sync_folder keeps checking until the folder exists."""
    wait = wait_for_sync_folder.retry_with(wait=wait_none())
    with patch(
        "fclipsync.agent_retry.check_sync_folder", new_callable=AsyncMock
    ) as mock_check:
        mock_check.side_effect = [
            SyncFolderUnavailable("missing"),
            SyncFolderUnavailable("missing"),
            None,
        ]
        await wait(tmp_path)

    assert mock_check.call_count == 3


@pytest.mark.asyncio
async def test_wait_does_not_retry_other_errors(tmp_path: Path) -> None:
    wait = wait_for_sync_folder.retry_with(wait=wait_none())
    with patch(
        "fclipsync.agent_retry.check_sync_folder", new_callable=AsyncMock
    ) as mock_check:
        mock_check.side_effect = PermissionError("denied")
        with pytest.raises(PermissionError):
            await wait(tmp_path)

    assert mock_check.call_count == 1
