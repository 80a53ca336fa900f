"""RewardSTACK integration settings endpoint tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

ROUTES = "app.api.v1.rewardstack_config"


def _config_url(workspace) -> str:
    return f"/api/v1/workspaces/{workspace.slug}/rewardstack/config"


def _apply_update(db, workspace, enabled, webhook_secret=None):
    workspace.rewardstack_enabled = enabled
    if webhook_secret is not None:
        workspace.rewardstack_webhook_secret = f"enc:{webhook_secret}" if webhook_secret else None
    return workspace


class TestRewardStackConfigApi:
    @pytest.mark.asyncio
    async def test_get_never_returns_the_secret(self, client_as, test_workspace):
        test_workspace.rewardstack_webhook_secret = "enc:whsec_live"
        async with client_as("ADMIN") as client:
            resp = await client.get(_config_url(test_workspace))

        assert resp.status_code == 200
        assert resp.json() == {"enabled": True, "webhook_secret_configured": True}

    @pytest.mark.asyncio
    async def test_enable_with_secret_stores_it(self, client_as, test_workspace):
        test_workspace.rewardstack_enabled = False
        with patch(f"{ROUTES}.workspace_ops") as ops:
            ops.update_rewardstack_config = AsyncMock(side_effect=_apply_update)
            async with client_as("ADMIN") as client:
                resp = await client.put(
                    _config_url(test_workspace),
                    json={"enabled": True, "webhook_secret": "whsec_live"},
                )

        assert resp.status_code == 200
        assert resp.json() == {"enabled": True, "webhook_secret_configured": True}
        kwargs = ops.update_rewardstack_config.await_args.kwargs
        assert kwargs == {"enabled": True, "webhook_secret": "whsec_live"}

    @pytest.mark.asyncio
    async def test_enable_without_any_secret_is_400(self, client_as, test_workspace):
        test_workspace.rewardstack_webhook_secret = None
        with patch(f"{ROUTES}.workspace_ops") as ops:
            ops.update_rewardstack_config = AsyncMock()
            async with client_as("ADMIN") as client:
                resp = await client.put(_config_url(test_workspace), json={"enabled": True})

        assert resp.status_code == 400
        assert resp.json() == {"error": "Webhook secret is required when enabling RewardSTACK"}
        ops.update_rewardstack_config.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_enable_keeps_stored_secret_when_omitted(self, client_as, test_workspace):
        test_workspace.rewardstack_webhook_secret = "enc:whsec_old"
        with patch(f"{ROUTES}.workspace_ops") as ops:
            ops.update_rewardstack_config = AsyncMock(side_effect=_apply_update)
            async with client_as("ADMIN") as client:
                resp = await client.put(_config_url(test_workspace), json={"enabled": True})

        assert resp.status_code == 200
        assert ops.update_rewardstack_config.await_args.kwargs["webhook_secret"] is None
        assert resp.json()["webhook_secret_configured"] is True

    @pytest.mark.asyncio
    async def test_clearing_secret_cannot_leave_integration_enabled(self, client_as, test_workspace):
        test_workspace.rewardstack_webhook_secret = "enc:whsec_old"
        async with client_as("ADMIN") as client:
            resp = await client.put(
                _config_url(test_workspace), json={"enabled": True, "webhook_secret": ""}
            )

        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_disable_and_clear(self, client_as, test_workspace):
        test_workspace.rewardstack_webhook_secret = "enc:whsec_old"
        with patch(f"{ROUTES}.workspace_ops") as ops:
            ops.update_rewardstack_config = AsyncMock(side_effect=_apply_update)
            async with client_as("ADMIN") as client:
                resp = await client.put(
                    _config_url(test_workspace), json={"enabled": False, "webhook_secret": ""}
                )

        assert resp.status_code == 200
        assert resp.json() == {"enabled": False, "webhook_secret_configured": False}

    @pytest.mark.asyncio
    async def test_manager_is_forbidden(self, client_as, test_workspace):
        async with client_as("MANAGER") as client:
            resp = await client.put(_config_url(test_workspace), json={"enabled": False})

        assert resp.status_code == 403
