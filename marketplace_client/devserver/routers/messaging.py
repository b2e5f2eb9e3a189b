from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from marketplace_client.devserver.store import get_store_instance, InMemoryStore
from marketplace_client.devserver.routers.auth import get_current_user

router = APIRouter(tags=["Messaging"])

MAX_MESSAGE_LENGTH = 3000


class MessageContent(BaseModel):
    content: Optional[str] = None


def freelancer_for(store: InMemoryStore, project: Dict[str, Any]) -> Optional[int]:
    offer_id = project.get("accepted_offer_id")
    if not offer_id:
        return None
    offer = store.get("offers", offer_id)
    return offer.get("freelancer_id") if offer else None


def can_access(store: InMemoryStore, project: Dict[str, Any], user_id: int) -> bool:
    freelancer_id = freelancer_for(store, project)
    return project.get("client_id") == user_id or (freelancer_id is not None and freelancer_id == user_id)


def get_project_or_404(store: InMemoryStore, project_id: int) -> Dict[str, Any]:
    project = store.get("projects", project_id)
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


def project_messages(store: InMemoryStore, project_id: int) -> List[Dict[str, Any]]:
    messages = store.query(collection_name="messages", field="project_id", operator="==", value=project_id)
    messages.sort(key=lambda msg: msg["created_at"])
    return messages


@router.get("/messages/conversations")
async def list_my_conversations(current_user: Dict[str, Any] = Depends(get_current_user)):
    store: InMemoryStore = get_store_instance()
    user_id = current_user["id"]

    # A conversation exists for every project with an accepted offer the user is part of
    projects = [
        project for project in store.get_all("projects")
        if project.get("accepted_offer_id") and can_access(store, project, user_id)
    ]
    projects.sort(key=lambda project: project["updated_at"], reverse=True)

    conversations = []
    for project in projects:
        if project["client_id"] == user_id:
            other_user = store.get("users", freelancer_for(store, project))
        else:
            other_user = store.get("users", project["client_id"])
        messages = project_messages(store, project["id"])
        last_message = messages[-1] if messages else None
        conversations.append({
            "id": project["id"],
            "project_id": project["id"],
            "project": {"id": project["id"], "title": project["title"], "status": project["status"]},
            "other_user": {
                "id": other_user["id"], "name": other_user["name"], "email": other_user["email"],
            } if other_user else None,
            "last_message": {
                "text": last_message["content"],
                "timestamp": last_message["created_at"],
                "sender_id": last_message["sender_id"],
            } if last_message else None,
            "unread_count": sum(
                1 for msg in messages
                if msg["receiver_id"] == user_id and msg["sender_id"] != user_id and not msg.get("is_read")
            ),
            "updated_at": project["updated_at"],
        })
    return conversations


@router.get("/messages/unread-count")
async def unread_count(current_user: Dict[str, Any] = Depends(get_current_user)):
    store: InMemoryStore = get_store_instance()
    unread = store.filter(
        "messages",
        lambda msg: msg.get("receiver_id") == current_user["id"] and not msg.get("is_read"),
    )
    return {"count": len(unread)}


@router.get("/projects/{project_id}/messages")
async def get_messages_for_project(project_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    store: InMemoryStore = get_store_instance()
    project = get_project_or_404(store, project_id)

    if not can_access(store, project, current_user["id"]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not allowed to view this chat")

    return project_messages(store, project_id)


@router.post("/projects/{project_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message_in_project(
    project_id: int,
    message_content: MessageContent,
    current_user: Dict[str, Any] = Depends(get_current_user),
):
    store: InMemoryStore = get_store_instance()
    project = get_project_or_404(store, project_id)
    sender_id = current_user["id"]

    if not can_access(store, project, sender_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to send messages for this project",
        )

    content = (message_content.content or "").strip()
    if not content:
        return JSONResponse(status_code=422, content={"content": ["The content field is required."]})
    if len(content) > MAX_MESSAGE_LENGTH:
        return JSONResponse(
            status_code=422,
            content={"content": [f"The content field must not be greater than {MAX_MESSAGE_LENGTH} characters."]},
        )

    freelancer_id = freelancer_for(store, project)
    if not freelancer_id:
        raise HTTPException(status_code=422, detail="Chat is not available for this project")
    receiver_id = freelancer_id if project["client_id"] == sender_id else project["client_id"]

    message_id = store.save(
        collection_name="messages",
        data={
            "project_id": project_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "is_read": False,
            "created_at": datetime.now(timezone.utc),
        },
    )
    store.update("projects", project_id, {})
    store.save(
        collection_name="notifications",
        data={
            "user_id": receiver_id,
            "type": "message_received",
            "title": f"New message from {current_user['name']}",
            "message": f"New message in project \"{project['title']}\": {content[:100]}",
            "related_type": "project",
            "related_id": project_id,
            "is_read": False,
        },
    )

    return {"message": "Message sent", "data": store.get("messages", message_id)}


@router.put("/projects/{project_id}/messages/read-all")
async def mark_all_as_read(project_id: int, current_user: Dict[str, Any] = Depends(get_current_user)):
    store: InMemoryStore = get_store_instance()
    project = get_project_or_404(store, project_id)

    if not can_access(store, project, current_user["id"]):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not allowed to view this chat")

    updated = 0
    for message in project_messages(store, project_id):
        if message["receiver_id"] == current_user["id"] and not message.get("is_read"):
            store.update("messages", message["id"], {"is_read": True})
            updated += 1
    return {"message": "Messages marked as read", "updated": updated}
