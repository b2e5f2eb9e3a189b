from typing import Any, Dict, List, Optional

from marketplace_client.api.client import ApiClient
from marketplace_client.api.envelope import Page, unwrap, unwrap_list, unwrap_page
from marketplace_client.models.schemas import Identifier, Project


def _projects(items: List[Any]) -> List[Project]:
    return [Project.model_validate(raw) for raw in items if isinstance(raw, dict)]


class ProjectService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def open_projects(self, params: Optional[Dict[str, Any]] = None) -> Page:
        """Open projects for freelancers to browse; page items are Project models."""
        page = unwrap_page(await self.api.get("/projects/open", params=params))
        return page.model_copy(update={"items": _projects(page.items)})

    async def projects(self, params: Optional[Dict[str, Any]] = None) -> List[Project]:
        return _projects(unwrap_list(await self.api.get("/projects", params=params)))

    async def project(self, project_id: Identifier) -> Project:
        return Project.model_validate(unwrap(await self.api.get(f"/projects/{project_id}")))

    async def create(self, data: Dict[str, Any]) -> Project:
        return Project.model_validate(unwrap(await self.api.post("/projects", json=data)))

    async def update(self, project_id: Identifier, data: Dict[str, Any]) -> Project:
        return Project.model_validate(unwrap(await self.api.put(f"/projects/{project_id}", json=data)))

    async def delete(self, project_id: Identifier) -> Any:
        return unwrap(await self.api.delete(f"/projects/{project_id}"))

    async def my_projects(self, params: Optional[Dict[str, Any]] = None) -> List[Project]:
        return _projects(unwrap_list(await self.api.get("/client/projects", params=params)))

    async def active_projects(self) -> List[Project]:
        return _projects(unwrap_list(await self.api.get("/freelancer/active-projects")))

    async def completed_projects(self, params: Optional[Dict[str, Any]] = None) -> List[Project]:
        # Includes delivered as well as completed projects
        return _projects(unwrap_list(await self.api.get("/freelancer/completed-projects", params=params)))

    async def deliver(self, project_id: Identifier) -> Any:
        return unwrap(await self.api.post(f"/projects/{project_id}/deliver"))

    async def complete(self, project_id: Identifier) -> Any:
        return unwrap(await self.api.post(f"/projects/{project_id}/complete"))

    async def cancel(self, project_id: Identifier) -> Any:
        return unwrap(await self.api.post(f"/projects/{project_id}/cancel"))
