import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Type

from fastapi import Body, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

import auth
import config
import database
import mailer
import uploads
from database import (
    COLL_ABOUT,
    COLL_EXPERIENCE,
    COLL_PROJECTS,
    COLL_SKILLS,
    create_document,
    get_collection,
    get_document,
    get_documents,
    serialize,
    to_object_id,
)
from schemas import (
    AboutSection,
    ContactMessage,
    ExperienceEntry,
    LoginRequest,
    LoginResponse,
    Project,
    Skill,
    SkillCategory,
    SkillCategoryCreate,
    SkillCreate,
    UploadResult,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("portfolio")

# The About section is a singleton under a fixed key
ABOUT_ID = "about"
# Keys clients may echo back from a read; never written from a request body
READ_ONLY_FIELDS = {"id", "_id", "created_at", "updated_at"}

PROJECT_SORT = [("order", 1), ("created_at", -1)]
EXPERIENCE_SORT = [("order", 1), ("start_date", -1)]
SKILLS_SORT = [("order", 1)]

# ==================
# FastAPI app config
# ==================
@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is None:
        logger.warning("DATABASE_URL not set; content endpoints will fail")
    else:
        try:
            database.ensure_indexes()
            auth.seed_admin_from_env()
        except PyMongoError:
            logger.exception("Database initialization failed")
    yield


app = FastAPI(title="Portfolio API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    config.UPLOAD_URL_PREFIX,
    StaticFiles(directory=uploads.ensure_upload_dir()),
    name="uploads",
)


# ==============
# Error handlers
# ==============

def format_errors(errors: List[dict]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", "Invalid input"))
    return "; ".join(parts) or "Invalid input"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": format_errors(exc.errors())})


@app.exception_handler(database.DatabaseNotConfigured)
async def database_not_configured_handler(request: Request, exc: database.DatabaseNotConfigured):
    logger.error("%s %s: database not configured", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# =========
# Utilities
# =========

def validate(model: Type[BaseModel], data: Dict[str, Any]) -> BaseModel:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=format_errors(e.errors()))


def merge(model: Type[BaseModel], existing: Optional[dict], updates: Dict[str, Any]) -> BaseModel:
    """Overlay a partial update on a stored document and validate the result as a whole."""
    base = {k: v for k, v in (existing or {}).items() if k in model.model_fields}
    patch = {k: v for k, v in updates.items() if k not in READ_ONLY_FIELDS}
    return validate(model, {**base, **patch})


def find_by_id(collection_name: str, id: str, label: str) -> dict:
    oid = to_object_id(id)
    doc = get_document(collection_name, {"_id": oid}) if oid else None
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


def update_by_id(collection_name: str, id: str, doc: BaseModel, label: str) -> dict:
    values = doc.model_dump()
    values["updated_at"] = database.now()
    res = get_collection(collection_name).find_one_and_update(
        {"_id": to_object_id(id)}, {"$set": values}, return_document=ReturnDocument.AFTER
    )
    if not res:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return serialize(res)


def delete_by_id(collection_name: str, id: str):
    oid = to_object_id(id)
    if oid is not None:
        res = get_collection(collection_name).delete_one({"_id": oid})
        if res.deleted_count:
            logger.info("Deleted %s %s", collection_name, id)


def insert_unique(collection_name: str, doc: BaseModel, field: str, message: str) -> str:
    value = getattr(doc, field)
    if get_collection(collection_name).count_documents({field: value}, limit=1):
        raise HTTPException(status_code=400, detail=message)
    try:
        return create_document(collection_name, doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=message)


def ensure_unique(collection_name: str, field: str, value: Any, exclude_id: str, message: str):
    query = {field: value, "_id": {"$ne": to_object_id(exclude_id)}}
    if get_collection(collection_name).count_documents(query, limit=1):
        raise HTTPException(status_code=400, detail=message)


# ======
# Routes
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}


@app.get("/api/ping")
def ping():
    return {"message": "pong"}


@app.get("/test")
def test_database():
    ok = database.db is not None
    collections = []
    status = "connected" if ok else "not-available"
    if ok:
        try:
            collections = database.db.list_collection_names()
        except PyMongoError as e:
            status = f"error: {str(e)[:80]}"
    return {"backend": "running", "database": status, "collections": collections[:10]}


# Auth
@app.post("/api/admin/auth/login", response_model=LoginResponse)
def login(data: LoginRequest):
    try:
        result = auth.login(data.email, data.password)
    except auth.InvalidCredentials:
        logger.info("Failed login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    logger.info("Admin %s logged in", result["user"]["email"])
    return result


@app.post("/api/admin/auth/logout")
def logout():
    # Tokens are stateless; the client discards its copy.
    return {"message": "Logged out successfully"}


# ----------
# Public API
# ----------
@app.get("/api/about")
def public_about():
    about = get_document(COLL_ABOUT, {"_id": ABOUT_ID})
    if not about:
        raise HTTPException(status_code=404, detail="About section not found")
    return about


@app.get("/api/skills")
def public_skills():
    return get_documents(COLL_SKILLS, sort=SKILLS_SORT)


@app.get("/api/projects")
def public_projects(featured: Optional[bool] = None):
    query = {"is_featured": True} if featured else {}
    return get_documents(COLL_PROJECTS, query, sort=PROJECT_SORT)


@app.get("/api/projects/{slug}")
def public_project(slug: str):
    project = get_document(COLL_PROJECTS, {"slug": slug.lower()})
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@app.get("/api/experience")
def public_experience():
    return get_documents(COLL_EXPERIENCE, sort=EXPERIENCE_SORT)


# -----
# About
# -----
@app.get("/api/admin/about")
def admin_get_about(_: dict = Depends(auth.get_current_admin)):
    return get_document(COLL_ABOUT, {"_id": ABOUT_ID}) or {}


@app.put("/api/admin/about")
def admin_update_about(payload: Dict[str, Any] = Body(...), _: dict = Depends(auth.get_current_admin)):
    coll = get_collection(COLL_ABOUT)
    existing = coll.find_one({"_id": ABOUT_ID})
    about = merge(AboutSection, existing, payload)
    ts = database.now()
    res = coll.find_one_and_update(
        {"_id": ABOUT_ID},
        {"$set": {**about.model_dump(), "updated_at": ts}, "$setOnInsert": {"created_at": ts}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    logger.info("About section %s", "updated" if existing else "created")
    return serialize(res)


# ------
# Skills
# ------
@app.get("/api/admin/skills")
@app.get("/api/admin/skills-category")
def admin_list_skill_categories(_: dict = Depends(auth.get_current_admin)):
    return get_documents(COLL_SKILLS, sort=SKILLS_SORT)


@app.post("/api/admin/skills-category", status_code=201)
def admin_create_skill_category(payload: SkillCategoryCreate, _: dict = Depends(auth.get_current_admin)):
    category = SkillCategory(name=payload.name, order=payload.order)
    _id = insert_unique(COLL_SKILLS, category, "name", "Category name already exists")
    logger.info("Created skill category %s", category.name)
    return find_by_id(COLL_SKILLS, _id, "Category")


@app.get("/api/admin/skills-category/{id}")
def admin_get_skill_category(id: str, _: dict = Depends(auth.get_current_admin)):
    return find_by_id(COLL_SKILLS, id, "Category")


@app.put("/api/admin/skills-category/{id}")
def admin_update_skill_category(id: str, payload: Dict[str, Any] = Body(...), _: dict = Depends(auth.get_current_admin)):
    existing = find_by_id(COLL_SKILLS, id, "Category")
    category = merge(SkillCategory, existing, payload)
    ensure_unique(COLL_SKILLS, "name", category.name, id, "Category name already exists")
    try:
        return update_by_id(COLL_SKILLS, id, category, "Category")
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Category name already exists")


@app.delete("/api/admin/skills-category/{id}")
def admin_delete_skill_category(id: str, _: dict = Depends(auth.get_current_admin)):
    delete_by_id(COLL_SKILLS, id)
    return {"message": "Category deleted"}


@app.get("/api/admin/skills-category/{id}/skills")
def admin_list_skills(id: str, _: dict = Depends(auth.get_current_admin)):
    return find_by_id(COLL_SKILLS, id, "Category").get("skills", [])


@app.post("/api/admin/skills-category/{id}/skills", status_code=201)
def admin_add_skill(id: str, payload: SkillCreate, _: dict = Depends(auth.get_current_admin)):
    skill = Skill(**payload.model_dump())
    res = get_collection(COLL_SKILLS).find_one_and_update(
        {"_id": to_object_id(id)},
        {"$push": {"skills": skill.model_dump()}, "$set": {"updated_at": database.now()}},
        return_document=ReturnDocument.AFTER,
    )
    if not res:
        raise HTTPException(status_code=404, detail="Category not found")
    return serialize(res)


@app.put("/api/admin/skills-category/{id}/skills/{skill_id}")
def admin_update_skill(
    id: str, skill_id: str, payload: Dict[str, Any] = Body(...), _: dict = Depends(auth.get_current_admin)
):
    category = find_by_id(COLL_SKILLS, id, "Category")
    current = next((s for s in category.get("skills", []) if s.get("id") == skill_id), None)
    if current is None:
        raise HTTPException(status_code=404, detail="Skill not found")
    skill = merge(Skill, current, payload)
    # positional update touches only the matched skill
    res = get_collection(COLL_SKILLS).update_one(
        {"_id": to_object_id(id), "skills.id": skill_id},
        {"$set": {"skills.$": skill.model_dump(), "updated_at": database.now()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Skill not found")
    return find_by_id(COLL_SKILLS, id, "Category")


@app.delete("/api/admin/skills-category/{id}/skills/{skill_id}")
def admin_delete_skill(id: str, skill_id: str, _: dict = Depends(auth.get_current_admin)):
    res = get_collection(COLL_SKILLS).find_one_and_update(
        {"_id": to_object_id(id), "skills.id": skill_id},
        {"$pull": {"skills": {"id": skill_id}}, "$set": {"updated_at": database.now()}},
        return_document=ReturnDocument.AFTER,
    )
    if not res:
        find_by_id(COLL_SKILLS, id, "Category")
        raise HTTPException(status_code=404, detail="Skill not found")
    return serialize(res)


# --------
# Projects
# --------
@app.get("/api/admin/projects")
def admin_list_projects(_: dict = Depends(auth.get_current_admin)):
    return get_documents(COLL_PROJECTS, sort=PROJECT_SORT)


@app.post("/api/admin/projects", status_code=201)
def admin_create_project(project: Project, _: dict = Depends(auth.get_current_admin)):
    _id = insert_unique(COLL_PROJECTS, project, "slug", "Slug already exists")
    logger.info("Created project %s", project.slug)
    return find_by_id(COLL_PROJECTS, _id, "Project")


@app.get("/api/admin/projects/{id}")
def admin_get_project(id: str, _: dict = Depends(auth.get_current_admin)):
    return find_by_id(COLL_PROJECTS, id, "Project")


@app.put("/api/admin/projects/{id}")
def admin_update_project(id: str, payload: Dict[str, Any] = Body(...), _: dict = Depends(auth.get_current_admin)):
    existing = find_by_id(COLL_PROJECTS, id, "Project")
    project = merge(Project, existing, payload)
    ensure_unique(COLL_PROJECTS, "slug", project.slug, id, "Slug already exists")
    try:
        return update_by_id(COLL_PROJECTS, id, project, "Project")
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Slug already exists")


@app.delete("/api/admin/projects/{id}")
def admin_delete_project(id: str, _: dict = Depends(auth.get_current_admin)):
    delete_by_id(COLL_PROJECTS, id)
    return {"message": "Project deleted"}


# ----------
# Experience
# ----------
@app.get("/api/admin/experience")
def admin_list_experience(_: dict = Depends(auth.get_current_admin)):
    return get_documents(COLL_EXPERIENCE, sort=EXPERIENCE_SORT)


@app.post("/api/admin/experience", status_code=201)
def admin_create_experience(entry: ExperienceEntry, _: dict = Depends(auth.get_current_admin)):
    _id = create_document(COLL_EXPERIENCE, entry)
    logger.info("Created experience entry at %s", entry.company_name)
    return find_by_id(COLL_EXPERIENCE, _id, "Experience")


@app.get("/api/admin/experience/{id}")
def admin_get_experience(id: str, _: dict = Depends(auth.get_current_admin)):
    return find_by_id(COLL_EXPERIENCE, id, "Experience")


@app.put("/api/admin/experience/{id}")
def admin_update_experience(id: str, payload: Dict[str, Any] = Body(...), _: dict = Depends(auth.get_current_admin)):
    existing = find_by_id(COLL_EXPERIENCE, id, "Experience")
    entry = merge(ExperienceEntry, existing, payload)
    return update_by_id(COLL_EXPERIENCE, id, entry, "Experience")


@app.delete("/api/admin/experience/{id}")
def admin_delete_experience(id: str, _: dict = Depends(auth.get_current_admin)):
    delete_by_id(COLL_EXPERIENCE, id)
    return {"message": "Experience deleted"}


# -------
# Uploads
# -------

def handle_upload(file: UploadFile, kind: uploads.UploadKind) -> dict:
    try:
        return uploads.save_upload(file, kind)
    except uploads.UnsupportedMediaType as e:
        raise HTTPException(status_code=415, detail=str(e))
    except uploads.PayloadTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))


@app.post("/api/admin/upload/image", response_model=UploadResult)
def upload_image(file: UploadFile = File(...), _: dict = Depends(auth.get_current_admin)):
    return handle_upload(file, uploads.IMAGE)


@app.post("/api/admin/upload/pdf", response_model=UploadResult)
def upload_pdf(file: UploadFile = File(...), _: dict = Depends(auth.get_current_admin)):
    return handle_upload(file, uploads.PDF)


@app.post("/api/admin/upload/video", response_model=UploadResult)
def upload_video(file: UploadFile = File(...), _: dict = Depends(auth.get_current_admin)):
    return handle_upload(file, uploads.VIDEO)


# -------
# Contact
# -------
@app.post("/api/send-email")
def send_email(payload: ContactMessage):
    try:
        mailer.send_contact_email(payload.name, payload.email, payload.message)
    except mailer.ContactValidationError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    except mailer.DeliveryError as e:
        return JSONResponse(status_code=500, content={"success": False, "message": e.message})
    return {"success": True, "message": "Message sent successfully! I'll get back to you soon."}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
