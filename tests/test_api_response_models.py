from app.api.system_api import router as system_router


def _response_model_by_path(router):
    return {
        route.path: getattr(route, "response_model", None)
        for route in router.routes
    }


def test_system_endpoints_have_response_models():
    models = _response_model_by_path(system_router)
    assert models.get("/api/logs") is not None
    assert models.get("/api/status") is not None
    assert models.get("/api/jobs/locks") is not None
    assert models.get("/api/jobs/asset-transfers/run") is not None
    assert models.get("/api/jobs/pending-user-cleanup/run") is not None
