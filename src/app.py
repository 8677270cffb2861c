"""StudyBuddy main entry point."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import streamlit as st

from config import (
    ACTIONS,
    AVATARS,
    BACKUPS_DIR,
    DEFAULT_DIFFICULTY,
    DEFAULT_QUESTION_COUNT,
    DIFFICULTIES,
    EDUCATION_LEVELS,
    GOALS,
    PAGE_ICON,
    PAGE_TITLE,
    PREDEFINED_SUBJECTS,
    QUIZ_ADVANCE_DELAY_S,
    SB_BG_PAGE,
    SB_CARD_BG,
    SB_CARD_SHADOW,
    SB_ERROR,
    SB_PRIMARY,
    SB_PRIMARY_HOVER,
    SB_SUCCESS,
    SB_TEXT,
    SIDEBAR_HEADER,
    SUBJECT_LABELS,
    VIEWER_OPEN_DELAY_S,
)
from migrations.migrate import MigrationError, MigrationInProgressError, migrate_to_latest
from services.auth_service import SessionStore
from services.calendar_service import VIEWS, CalendarManager, event_time_range, time_slots
from services.content_parser import ContentParseError
from services.dashboard_service import DashboardManager
from services.database_service import DatabaseManager
from services.dispatcher import Dispatcher, Intent, UnknownIntentError
from services.errors import ServiceError, ValidationError
from services.flashcard_player import BACK, FlashcardPlayer, FlashcardStateError, format_flashcard_content
from services.generation_client import GenerationClient
from services.materials_service import (
    DATE_FILTERS,
    SORT_KEYS,
    BlobCache,
    MaterialsManager,
    UploadFile,
    file_icon,
    file_type_label,
    format_file_size,
    parse_timestamp,
    subject_class,
    subject_label,
)
from services.planner_service import PRIORITIES, PlannerManager, priority_color, priority_label
from services.profile_service import OnboardingDraft, ProfileManager
from services.project_viewer import ProjectViewer, summary_export_name
from services.quiz_player import QuizPlayer, QuizState, QuizStateError
from services.workspace_service import (
    QuizSettings,
    WorkspaceController,
    actions_label,
    project_count_label,
    workspace_subjects,
)
from utils.notices import NoticeBoard

LOGGER = logging.getLogger("studybuddy.app")

_MIGRATIONS_DONE = False
_USER_ERRORS = (
    ValidationError,
    ServiceError,
    ContentParseError,
    QuizStateError,
    FlashcardStateError,
    UnknownIntentError,
)
NAV_PAGES: list[tuple[str, str]] = [
    ("dashboard", "🏠  Dashboard"),
    ("materials", "📁  Materials"),
    ("learn", "✨  Learn"),
    ("planner", "✅  Planner"),
    ("calendar", "📅  Calendar"),
]
_DATE_FILTER_LABELS = {"": "All Time", "today": "Today", "week": "This Week", "month": "This Month"}
_SORT_LABELS = {"recent": "Most Recent", "oldest": "Oldest First", "name": "Name A-Z", "name-desc": "Name Z-A"}


@dataclass
class AppContext:
    """Controllers for one browser session, built once and passed explicitly."""

    gateway: DatabaseManager
    session: SessionStore
    profiles: ProfileManager
    materials: MaterialsManager
    workspace: WorkspaceController
    quiz: QuizPlayer
    flashcards: FlashcardPlayer
    viewer: ProjectViewer
    planner: PlannerManager
    calendar: CalendarManager
    dashboard: DashboardManager
    dispatcher: Dispatcher
    notices: NoticeBoard


def build_app_context() -> AppContext:
    gateway = DatabaseManager()
    session = SessionStore(gateway)
    materials = MaterialsManager(gateway, session, BlobCache())
    workspace = WorkspaceController(gateway, session, GenerationClient(), materials)
    quiz = QuizPlayer(gateway)
    flashcards = FlashcardPlayer(gateway)
    ctx = AppContext(
        gateway=gateway,
        session=session,
        profiles=ProfileManager(gateway, session),
        materials=materials,
        workspace=workspace,
        quiz=quiz,
        flashcards=flashcards,
        viewer=ProjectViewer(gateway, workspace, materials, quiz, flashcards),
        planner=PlannerManager(gateway, session),
        calendar=CalendarManager(gateway, session),
        dashboard=DashboardManager(gateway, session),
        dispatcher=Dispatcher(),
        notices=NoticeBoard(),
    )
    _register_intents(ctx)
    session.on_auth_state_change(lambda user: _on_auth_change(ctx, user))
    return ctx


def _on_auth_change(ctx: AppContext, user: dict[str, Any] | None) -> None:
    if user is None:
        ctx.quiz.close()
        ctx.flashcards.close()
        ctx.viewer.close()
        ctx.materials.materials = []
        ctx.workspace.projects = []
        ctx.profiles.profile = None
        return
    try:
        ctx.profiles.load_profile()
        ctx.materials.load_user_materials()
        ctx.workspace.load_user_projects()
    except ServiceError as e:
        LOGGER.error("Failed to load user data after sign-in: %s", e)
        ctx.notices.error(str(e))


def _register_intents(ctx: AppContext) -> None:
    d = ctx.dispatcher

    def open_project(payload: dict[str, Any]) -> None:
        ctx.viewer.open(payload["project_id"])
        _set_page("project")

    def start_quiz(payload: dict[str, Any]) -> None:
        ctx.viewer.start_quiz(payload["project_id"])

    def start_flashcards(payload: dict[str, Any]) -> None:
        ctx.viewer.start_flashcards(payload["project_id"])

    def delete_material(payload: dict[str, Any]) -> None:
        ctx.materials.delete(payload["material_id"])
        ctx.notices.success("Material deleted successfully!")

    def toggle_todo(payload: dict[str, Any]) -> None:
        ctx.planner.toggle_todo(payload["todo_id"], payload["completed"])

    def delete_todo(payload: dict[str, Any]) -> None:
        ctx.planner.delete_todo(payload["todo_id"])
        ctx.notices.success("Task deleted successfully")

    def delete_event(payload: dict[str, Any]) -> None:
        ctx.calendar.delete_event(payload["event_id"])
        ctx.notices.success("Event deleted successfully")

    def select_date(payload: dict[str, Any]) -> None:
        ctx.calendar.select_date(payload["date"])

    def navigate(payload: dict[str, Any]) -> None:
        _set_page(payload["page"])

    d.register("open_project", open_project)
    d.register("start_quiz", start_quiz)
    d.register("start_flashcards", start_flashcards)
    d.register("delete_material", delete_material)
    d.register("toggle_todo", toggle_todo)
    d.register("delete_todo", delete_todo)
    d.register("delete_event", delete_event)
    d.register("select_date", select_date)
    d.register("navigate", navigate)


def _ctx() -> AppContext:
    if "app_ctx" not in st.session_state:
        st.session_state["app_ctx"] = build_app_context()
    return st.session_state["app_ctx"]


def _emit(intent_type: str, **payload: Any) -> None:
    """Dispatch an intent from a widget, report user-facing failures, then rerun."""
    ctx = _ctx()
    try:
        ctx.dispatcher.dispatch(Intent(intent_type, payload))
    except _USER_ERRORS as e:
        ctx.notices.error(str(e))
    st.rerun()


def _set_page(page: str) -> None:
    st.session_state["nav_page_selector"] = page


def _ensure_migrations_once() -> int:
    global _MIGRATIONS_DONE
    if _MIGRATIONS_DONE and "schema_version" in st.session_state:
        return int(st.session_state["schema_version"])
    try:
        version = migrate_to_latest()
    except MigrationInProgressError:
        if not st.session_state.get("migration_in_progress_notice_shown"):
            st.info("Migration in progress. Please refresh shortly.")
            st.session_state["migration_in_progress_notice_shown"] = True
        return int(st.session_state.get("schema_version", 0))
    except MigrationError as e:
        st.error(f"{e}")
        st.error(f"Recovery: restore from backups in {BACKUPS_DIR}")
        st.stop()
    _MIGRATIONS_DONE = True
    st.session_state["migration_in_progress_notice_shown"] = False
    st.session_state["schema_version"] = version
    return version


def _inject_css() -> None:
    st.markdown(
        f"""
        <style>
        .stApp {{ background: {SB_BG_PAGE} !important; }}
        h1, h2, h3 {{ color: {SB_TEXT} !important; }}
        .stButton > button[kind="primary"] {{
            background: {SB_PRIMARY} !important;
            border-color: {SB_PRIMARY} !important;
        }}
        .stButton > button[kind="primary"]:hover {{ background: {SB_PRIMARY_HOVER} !important; }}
        .sb-card {{
            background: {SB_CARD_BG};
            box-shadow: {SB_CARD_SHADOW};
            border-radius: 12px;
            padding: 1rem 1.25rem;
            margin-bottom: 0.75rem;
        }}
        .subject-tag {{
            display: inline-block; padding: 2px 10px; border-radius: 999px;
            font-size: 0.8rem; font-weight: 600; background: #EEF2FF; color: {SB_PRIMARY};
        }}
        .subject-tag.untagged {{ background: #F1F5F9; color: #64748B; }}
        .subject-tag.custom {{ background: #FEF3C7; color: #92400E; }}
        .quiz-correct {{ color: {SB_SUCCESS}; font-weight: 600; }}
        .quiz-incorrect {{ color: {SB_ERROR}; font-weight: 600; }}
        .flashcard-face {{
            background: {SB_CARD_BG}; box-shadow: {SB_CARD_SHADOW}; border-radius: 16px;
            min-height: 180px; padding: 1.5rem; font-size: 1.1rem;
        }}
        .flashcard-table td {{ border: 1px solid #E2E8F0; padding: 4px 8px; }}
        .sidebar-header {{ font-weight: 800; font-size: 1.1rem; color: {SB_PRIMARY}; }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def _render_notices() -> None:
    notice = _ctx().notices.active()
    if notice is None:
        return
    if notice.kind == "success":
        st.success(notice.message)
    elif notice.kind == "warning":
        st.warning(notice.message)
    else:
        st.error(notice.message)


def _subject_tag(subject: str | None) -> str:
    return f'<span class="subject-tag {subject_class(subject)}">{subject_label(subject)}</span>'


def _local_date_label(value: Any) -> str:
    return parse_timestamp(value).strftime("%d/%m/%Y")


# ---------- Auth & onboarding ----------


def _render_auth_page() -> None:
    ctx = _ctx()
    st.title(f"{PAGE_ICON} {PAGE_TITLE}")
    st.caption("Upload your study materials and let AI build summaries, quizzes and flashcards.")
    sign_in_tab, sign_up_tab = st.tabs(["Sign In", "Sign Up"])

    with sign_in_tab:
        with st.form("sign_in_form"):
            email = st.text_input("Email", key="sign_in_email")
            password = st.text_input("Password", type="password", key="sign_in_password")
            submitted = st.form_submit_button("Sign In", type="primary")
        if submitted:
            result = ctx.session.sign_in(email, password)
            if result.success:
                st.rerun()
            else:
                st.error(result.error)

    with sign_up_tab:
        with st.form("sign_up_form"):
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password")
            confirm = st.text_input("Confirm password", type="password", key="sign_up_confirm")
            submitted = st.form_submit_button("Create account", type="primary")
        if submitted:
            if password != confirm:
                st.error("Passwords do not match.")
            else:
                result = ctx.session.sign_up(email, password)
                if not result.success:
                    st.error(result.error)
                elif result.needs_email_confirmation:
                    st.info("Please check your email to confirm your account, then sign in.")
                else:
                    st.rerun()


def _render_onboarding_page() -> None:
    ctx = _ctx()
    draft: OnboardingDraft = st.session_state.setdefault("onboarding_draft", OnboardingDraft())
    st.title("Let's set up your profile")
    st.progress(draft.step / 4, text=f"Step {draft.step} of 4")

    if draft.step == 1:
        draft.display_name = st.text_input("What should we call you?", value=draft.display_name)
    elif draft.step == 2:
        index = AVATARS.index(draft.avatar) if draft.avatar in AVATARS else None
        choice = st.radio("Pick an avatar", AVATARS, index=index, horizontal=True)
        draft.avatar = choice or ""
    elif draft.step == 3:
        index = EDUCATION_LEVELS.index(draft.education) if draft.education in EDUCATION_LEVELS else None
        choice = st.radio(
            "Education level",
            EDUCATION_LEVELS,
            index=index,
            format_func=lambda v: v.replace("-", " ").title(),
        )
        draft.education = choice or ""
    else:
        draft.goals = st.multiselect(
            "Learning goals",
            GOALS,
            default=draft.goals,
            format_func=lambda v: v.replace("-", " ").title(),
        )
        draft.custom_goal = st.text_input("Anything else? (optional)", value=draft.custom_goal)

    back_col, next_col = st.columns(2)
    if draft.step > 1 and back_col.button("← Back"):
        draft.previous_step()
        st.rerun()
    if draft.step < 4:
        if next_col.button("Next →", type="primary"):
            try:
                draft.next_step()
            except ValidationError as e:
                st.error(str(e))
            else:
                st.rerun()
    elif next_col.button("Complete setup", type="primary"):
        try:
            ctx.profiles.complete_onboarding(draft)
        except (ValidationError, ServiceError) as e:
            st.error(str(e))
        else:
            st.session_state.pop("onboarding_draft", None)
            _set_page("dashboard")
            st.rerun()


# ---------- Sidebar ----------


def _render_sidebar() -> None:
    ctx = _ctx()
    profile = ctx.profiles.profile or {}
    st.sidebar.markdown(f'<p class="sidebar-header">{SIDEBAR_HEADER}</p>', unsafe_allow_html=True)
    st.sidebar.caption(f"{profile.get('avatar', '')} {profile.get('display_name', '')}".strip())

    if "nav_page_selector" not in st.session_state:
        st.session_state["nav_page_selector"] = "dashboard"
    current = st.session_state["nav_page_selector"]
    for page, label in NAV_PAGES:
        kind = "primary" if current == page else "secondary"
        if st.sidebar.button(label, key=f"nav_{page}", use_container_width=True, type=kind):
            _emit("navigate", page=page)

    st.sidebar.divider()
    if st.sidebar.button("Logout", key="btn_logout", use_container_width=True):
        ctx.session.sign_out()
        st.session_state.pop("nav_page_selector", None)
        st.rerun()


# ---------- Dashboard ----------


def _render_dashboard() -> None:
    ctx = _ctx()
    st.title(ctx.dashboard.welcome_title(ctx.profiles.profile))
    stats = ctx.dashboard.load_stats()
    c1, c2, c3 = st.columns(3)
    c1.metric("Materials", stats["materials"])
    c2.metric("Summaries", stats["summaries"])
    c3.metric("Quizzes", stats["quizzes"])

    quick_event, quick_todo = st.columns(2)
    with quick_event.expander("📅 Add event"):
        _render_event_form("dashboard_event")
    with quick_todo.expander("✅ Add task"):
        _render_todo_form("dashboard_todo")

    with st.container(border=True):
        st.markdown("#### 🕐 Recent activity")
        feed = ctx.dashboard.activity_feed()
        if not feed:
            st.caption("No recent activity. Start by uploading your first study material in the Materials tab.")
        for activity, ago in feed:
            st.markdown(f"{activity.icon} {activity.description}  \n<small>{ago}</small>", unsafe_allow_html=True)


# ---------- Materials ----------


def _render_materials_page() -> None:
    ctx = _ctx()
    st.title("📁 Materials")

    uploaded = st.file_uploader("Upload study materials", accept_multiple_files=True, key="materials_uploader")
    if uploaded and st.button("Upload", type="primary", key="btn_upload"):
        files = [UploadFile(name=f.name, type=f.type or "unknown", data=f.getvalue()) for f in uploaded]
        try:
            with st.spinner("Uploading..."):
                count = ctx.materials.upload_files(files)
        except _USER_ERRORS as e:
            ctx.notices.error(str(e))
        else:
            ctx.notices.success(f"Successfully uploaded {count} file(s)")
            ctx.dashboard.add_recent_activity("upload", f"Uploaded {count} file(s)")
        st.rerun()

    options, selected = ctx.materials.subject_filter_options(st.session_state.get("materials_subject_filter", ""))
    selectable = [o for o in options if not o.disabled]
    labels = {o.value: o.label for o in selectable}
    values = [o.value for o in selectable]
    f1, f2, f3 = st.columns(3)
    subject_filter = f1.selectbox(
        "Subject", values, index=values.index(selected), format_func=lambda v: labels.get(v, v)
    )
    st.session_state["materials_subject_filter"] = subject_filter
    date_filter = f2.selectbox("Uploaded", DATE_FILTERS, format_func=lambda v: _DATE_FILTER_LABELS[v])
    sort_by = f3.selectbox("Sort", SORT_KEYS, format_func=lambda v: _SORT_LABELS[v])

    rows = ctx.materials.visible_materials(subject_filter, date_filter, sort_by, now=datetime.now())
    if not rows:
        st.info("No materials found. Try adjusting your filters or upload new materials.")
        return
    for material in rows:
        _render_material_card(material)


def _render_material_card(material: dict[str, Any]) -> None:
    ctx = _ctx()
    mid = material["id"]
    with st.container(border=True):
        head, tag = st.columns([4, 1])
        head.markdown(
            f"{file_icon(material.get('type'))} **{material['name']}**  \n"
            f"<small>{file_type_label(material.get('type'))} · {format_file_size(material.get('size') or 0)}"
            f" · {_local_date_label(material.get('uploaded_at'))}</small>",
            unsafe_allow_html=True,
        )
        tag.markdown(_subject_tag(material.get("subject")), unsafe_allow_html=True)

        with st.expander("Preview / download"):
            try:
                data = ctx.materials.get_material_blob(material)
            except ServiceError as e:
                st.caption(str(e))
            else:
                if "text" in (material.get("type") or ""):
                    st.text(data.decode("utf-8", errors="replace")[:5000])
                elif "image" in (material.get("type") or ""):
                    st.image(data)
                st.download_button("⬇️ Download", data=data, file_name=material["name"], key=f"dl_{mid}")

        with st.expander("Tag / rename / delete"):
            with st.form(f"tag_form_{mid}"):
                subject_choices = [*PREDEFINED_SUBJECTS, "other"]
                current = material.get("subject")
                index = subject_choices.index(current) if current in subject_choices else len(subject_choices) - 1
                subject = st.selectbox(
                    "Subject", subject_choices, index=index, format_func=lambda v: SUBJECT_LABELS.get(v, v)
                )
                custom = st.text_input(
                    "Custom subject", value=current if current not in (*PREDEFINED_SUBJECTS, "untagged") else ""
                )
                if st.form_submit_button("Save tag"):
                    try:
                        ctx.materials.tag_subject(mid, subject, custom)
                    except _USER_ERRORS as e:
                        ctx.notices.error(str(e))
                    else:
                        ctx.notices.success("Subject tag added successfully!")
                    st.rerun()
            with st.form(f"rename_form_{mid}"):
                new_name = st.text_input("New name", value=material["name"])
                if st.form_submit_button("Rename"):
                    try:
                        ctx.materials.rename(mid, new_name)
                    except _USER_ERRORS as e:
                        ctx.notices.error(str(e))
                    else:
                        ctx.notices.success("Material renamed successfully!")
                    st.rerun()
            confirm = st.checkbox("I understand this cannot be undone", key=f"confirm_del_{mid}")
            if st.button("🗑️ Delete", key=f"del_{mid}", disabled=not confirm):
                _emit("delete_material", material_id=mid)


# ---------- Learn: workspace + library ----------


def _render_learn_page() -> None:
    st.title("✨ Learn")
    workspace_tab, library_tab = st.tabs(["Workspace", "Library"])
    with workspace_tab:
        _render_workspace()
    with library_tab:
        _render_library()


def _render_workspace() -> None:
    ctx = _ctx()
    subjects = workspace_subjects(ctx.materials.materials)
    if not subjects:
        st.info("Tag some materials with a subject to start a project.")
        return

    project_name = st.text_input("Project name", key="ws_project_name")
    subject = st.selectbox("Subject", subjects, format_func=subject_label, key="ws_subject")
    candidates = ctx.workspace.materials_for_subject(subject)
    if not candidates:
        st.caption("No materials found for this subject")
        return
    names = {m["id"]: f"{file_icon(m.get('type'))} {m['name']} · {format_file_size(m.get('size') or 0)}" for m in candidates}
    selected_ids = st.multiselect("Select materials", list(names), format_func=lambda mid: names[mid], key="ws_materials")

    selected_actions: list[str] = []
    question_count, difficulty = DEFAULT_QUESTION_COUNT, DEFAULT_DIFFICULTY
    if selected_ids:
        cols = st.columns(len(ACTIONS))
        for col, action in zip(cols, ACTIONS):
            if col.checkbox(action.capitalize(), key=f"ws_action_{action}"):
                selected_actions.append(action)
        if "quiz" in selected_actions:
            q1, q2 = st.columns(2)
            question_count = int(q1.number_input("Questions", min_value=1, max_value=50, value=DEFAULT_QUESTION_COUNT))
            difficulty = q2.selectbox("Difficulty", DIFFICULTIES, index=DIFFICULTIES.index(DEFAULT_DIFFICULTY))

    can_generate = bool(project_name.strip() and selected_ids and selected_actions)
    if st.button("Generate", type="primary", disabled=not can_generate, key="btn_generate"):
        try:
            with st.spinner("Generating learning content..."):
                outcome = ctx.workspace.generate_project(
                    project_name,
                    selected_ids,
                    selected_actions,
                    QuizSettings(question_count=question_count, difficulty=difficulty),
                    subject=subject,
                )
        except ServiceError as e:
            ctx.notices.error(f"Failed to generate project: {e}")
            st.rerun()
        except ValidationError as e:
            ctx.notices.error(str(e))
            st.rerun()

        outcome.report(ctx.notices)
        ctx.dashboard.add_recent_activity("project", f"Generated project: {project_name.strip()}")
        for key in ("ws_project_name", "ws_materials", *(f"ws_action_{a}" for a in ACTIONS)):
            st.session_state.pop(key, None)
        time.sleep(VIEWER_OPEN_DELAY_S)
        _emit("open_project", project_id=outcome.project["id"])


def _render_library() -> None:
    ctx = _ctx()
    subjects, selected = ctx.workspace.library_subject_options(st.session_state.get("library_subject_filter", ""))
    if ctx.workspace.projects:
        values = ["", *subjects]
        subject_filter = st.selectbox(
            "Filter by subject",
            values,
            index=values.index(selected),
            format_func=lambda v: subject_label(v) if v else "All Subjects",
            key="library_subject_select",
        )
        st.session_state["library_subject_filter"] = subject_filter
    else:
        subject_filter = ""

    projects = ctx.workspace.library(subject_filter)
    st.caption(project_count_label(len(projects)))
    if not projects:
        st.info(ctx.workspace.empty_library_message(subject_filter))
        return
    for project in projects:
        with st.container(border=True):
            head, tag = st.columns([4, 1])
            head.markdown(f"**{project['name']}**  \n<small>{_local_date_label(project.get('created_at'))}</small>", unsafe_allow_html=True)
            tag.markdown(_subject_tag(project.get("subject")), unsafe_allow_html=True)
            st.caption(
                f"Materials: {len(project.get('material_ids') or [])} file(s) · "
                f"Generated: {actions_label(project.get('actions') or [])}"
            )
            if st.button("Open Project", key=f"open_{project['id']}", type="primary"):
                _emit("open_project", project_id=project["id"])


# ---------- Project viewer, quiz, flashcards ----------


def _render_project_page() -> None:
    ctx = _ctx()
    view = ctx.viewer.current
    if view is None:
        _emit("navigate", page="learn")
        return

    if st.button("← Back to library"):
        ctx.viewer.close()
        _emit("navigate", page="learn")

    st.title(view.project["name"])
    if ctx.quiz.state is not QuizState.NOT_STARTED:
        _render_quiz_player()
        return
    if ctx.flashcards.active:
        _render_flashcard_player()
        return

    st.markdown("### 📚 Materials")
    cols = st.columns(3)
    for i, material in enumerate(view.materials):
        with cols[i % 3].container(border=True):
            st.markdown(f"{file_icon(material.get('type'))} **{material['name']}**")
            st.caption(f"{file_type_label(material.get('type'))} · {format_file_size(material.get('size') or 0)}")

    if view.summary is not None:
        st.markdown("### 📝 Summary")
        with st.container(border=True):
            if view.summary.status == "ready":
                st.caption(f"• {view.summary.word_count} words • Generated")
                st.markdown(view.summary.html, unsafe_allow_html=True)
                st.download_button(
                    "⬇️ Download summary",
                    data=view.summary.text,
                    file_name=summary_export_name(view.project.get("name")),
                    mime="text/plain",
                )
            elif view.summary.status == "empty":
                st.info("The summary for this project is not yet available or failed to generate.")
            else:
                st.error("Failed to load the summary. Please try again later.")

    if view.quiz is not None:
        st.markdown("### 🧠 Quiz")
        with st.container(border=True):
            st.write(view.quiz.description)
            if st.button("🎯 Take Quiz", key="btn_take_quiz", type="primary"):
                _emit("start_quiz", project_id=view.quiz.project_id)

    if view.flashcards is not None:
        st.markdown("### 🃏 Flashcards")
        with st.container(border=True):
            st.write("Review key concepts with interactive flashcards generated from your materials.")
            if st.button("🔄 Study Flashcards", key="btn_study_flashcards", type="primary"):
                _emit("start_flashcards", project_id=view.flashcards.project_id)


def _render_quiz_player() -> None:
    ctx = _ctx()
    player = ctx.quiz
    quiz = player.quiz or {}

    if player.state is QuizState.COMPLETE:
        tier, message = player.performance()
        st.subheader("Quiz Complete! 🎉")
        st.metric("Final Score", f"{player.final_score}%")
        st.write(f"You scored {player.score} out of {len(player.questions)} questions correctly!")
        st.info(message)
        c1, c2 = st.columns(2)
        if c1.button("🔄 Take Quiz Again"):
            player.restart()
            st.rerun()
        if c2.button("✓ Close Quiz"):
            player.close()
            st.rerun()
        return

    question = player.current_question or {}
    st.subheader(quiz.get("title") or "Quiz")
    st.caption(f"Question {player.index + 1} of {len(player.questions)}")
    st.markdown(f"**{question.get('question', '')}**")

    options = question.get("options") or []
    if player.state is QuizState.ANSWER_REVEALED:
        record = player.answers[player.index]
        for i, option in enumerate(options):
            letter = chr(65 + i)
            if record is not None and i == record.correct_option:
                st.markdown(f'<span class="quiz-correct">{letter}. {option} ✓ Correct!</span>', unsafe_allow_html=True)
            elif record is not None and i == record.selected_option:
                st.markdown(f'<span class="quiz-incorrect">{letter}. {option} ✗ Incorrect</span>', unsafe_allow_html=True)
            else:
                st.markdown(f"{letter}. {option}")
        time.sleep(QUIZ_ADVANCE_DELAY_S)
        player.advance()
        st.rerun()

    choice = st.radio(
        "Choose an answer",
        list(range(len(options))),
        index=player.pending_choice,
        format_func=lambda i: f"{chr(65 + i)}. {options[i]}",
        key=f"quiz_choice_{player.index}",
    )
    if choice is not None and choice != player.pending_choice:
        player.select_option(choice)

    prev_col, submit_col, close_col = st.columns(3)
    if prev_col.button("← Previous", disabled=player.index == 0):
        player.previous()
        st.session_state.pop(f"quiz_choice_{player.index}", None)
        st.rerun()
    label = "Finish Quiz" if player.is_last_question else "Next Question →"
    if submit_col.button(label, type="primary", disabled=player.pending_choice is None):
        player.submit()
        st.session_state.pop(f"quiz_choice_{player.index}", None)
        st.rerun()
    if close_col.button("Close"):
        player.close()
        st.rerun()


def _render_flashcard_player() -> None:
    ctx = _ctx()
    player = ctx.flashcards
    card = player.current_card or {}
    st.subheader("Study Flashcards")
    st.caption(player.progress_label())

    face_label = "Back" if player.face == BACK else "Front"
    body = format_flashcard_content(card.get("back") if player.face == BACK else card.get("front"))
    st.markdown(
        f'<div class="flashcard-face"><small>{face_label}</small><br>{body}</div>',
        unsafe_allow_html=True,
    )

    c1, c2, c3, c4 = st.columns(4)
    if c1.button("← Previous", disabled=player.index == 0):
        player.previous()
        st.rerun()
    if c2.button("Flip"):
        player.flip()
        st.rerun()
    if c3.button("Next →", disabled=player.index >= len(player.cards) - 1):
        player.next()
        st.rerun()
    if c4.button("Close"):
        player.close()
        st.rerun()


# ---------- Planner ----------


def _render_todo_form(key: str) -> None:
    ctx = _ctx()
    with st.form(key, clear_on_submit=True):
        task = st.text_input("Task")
        priority = st.selectbox("Priority", PRIORITIES, index=1, format_func=priority_label)
        submitted = st.form_submit_button("Add task")
    if submitted:
        try:
            ctx.planner.add_todo(task, priority)
        except _USER_ERRORS as e:
            ctx.notices.error(str(e))
        else:
            ctx.notices.success("Task added successfully!")
            ctx.dashboard.add_recent_activity("todo", f"Added task: {task.strip()}")
        st.rerun()


def _render_planner_page() -> None:
    ctx = _ctx()
    st.title("✅ Planner")
    try:
        ctx.planner.load_todos()
    except ServiceError as e:
        st.error(str(e))
        return
    _render_todo_form("planner_todo")

    if not ctx.planner.todos:
        st.info("No tasks yet. Add your first task to stay organized.")
        return
    for title, todos, empty in (
        ("Pending Tasks", ctx.planner.pending, "No pending tasks"),
        ("Completed Tasks", ctx.planner.completed, "No completed tasks"),
    ):
        st.markdown(f"#### {title} ({len(todos)})" if todos else f"#### {title}")
        if not todos:
            st.caption(empty)
        for todo in todos:
            c1, c2, c3 = st.columns([1, 8, 1])
            checked = c1.checkbox("done", value=bool(todo.get("completed")), key=f"todo_{todo['id']}", label_visibility="collapsed")
            if checked != bool(todo.get("completed")):
                _emit("toggle_todo", todo_id=todo["id"], completed=checked)
            c2.markdown(
                f"{todo['task']}  \n"
                f'<small style="color:{priority_color(todo.get("priority"))};font-weight:600">'
                f"{priority_label(todo.get('priority'))}</small> <small>{_local_date_label(todo.get('created_at'))}</small>",
                unsafe_allow_html=True,
            )
            if c3.button("🗑️", key=f"del_todo_{todo['id']}"):
                _emit("delete_todo", todo_id=todo["id"])


# ---------- Calendar ----------


def _render_event_form(key: str) -> None:
    ctx = _ctx()
    with st.form(key, clear_on_submit=True):
        title = st.text_input("Title")
        description = st.text_area("Description")
        c1, c2, c3 = st.columns(3)
        event_date = c1.date_input("Date", value=date.today())
        event_time = c2.time_input("Time", value=datetime.now().time().replace(second=0, microsecond=0))
        duration = c3.number_input("Duration (min)", min_value=15, max_value=24 * 60, value=60, step=15)
        submitted = st.form_submit_button("Add event")
    if submitted:
        try:
            ctx.calendar.add_event(
                title,
                event_date.isoformat() if event_date else "",
                event_time.strftime("%H:%M") if event_time else "",
                int(duration),
                description,
            )
        except _USER_ERRORS as e:
            ctx.notices.error(str(e))
        else:
            ctx.notices.success("Event added successfully!")
            ctx.dashboard.add_recent_activity("event", f"Scheduled: {title.strip()}")
        st.rerun()


def _render_event_chip(event: dict[str, Any], key_prefix: str) -> None:
    with st.popover(event["title"], use_container_width=True):
        st.markdown(f"**{event['title']}**")
        st.caption(f"{event.get('event_date')} · {event_time_range(event)}")
        if event.get("description"):
            st.write(event["description"])
        if st.button("Delete", key=f"{key_prefix}_del_{event['id']}"):
            _emit("delete_event", event_id=event["id"])


def _render_calendar_page() -> None:
    ctx = _ctx()
    cal = ctx.calendar
    st.title("📅 Calendar")
    try:
        cal.load_events()
    except ServiceError as e:
        st.error(str(e))
        return

    with st.expander("Add event"):
        _render_event_form("calendar_event")

    c1, c2, c3, c4, c5 = st.columns([1, 1, 1, 3, 2])
    if c1.button("Today"):
        cal.go_to_today()
        st.rerun()
    if c2.button("‹"):
        cal.navigate_previous()
        st.rerun()
    if c3.button("›"):
        cal.navigate_next()
        st.rerun()
    c4.markdown(f"### {cal.header_label()}")
    view = c5.selectbox("View", VIEWS, index=VIEWS.index(cal.view), label_visibility="collapsed")
    if view != cal.view:
        cal.change_view(view)
        st.rerun()

    if cal.view == "month":
        headers = st.columns(7)
        for col, name in zip(headers, ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
            col.markdown(f"**{name}**")
        for week in cal.month_weeks():
            cols = st.columns(7)
            for col, day in zip(cols, week):
                with col.container(border=True):
                    label = f"**{day.day}**" if cal.is_today(day) else str(day.day)
                    if day.month != cal.current_date.month:
                        label = f":gray[{day.day}]"
                    if st.button(label, key=f"month_{day.isoformat()}"):
                        _emit("select_date", date=day.isoformat())
                    events = cal.events_for_date(day)
                    for event in events[:3]:
                        st.caption(event["title"])
                    if len(events) > 3:
                        st.caption(f"+{len(events) - 3} more")
        return

    days = cal.week_days() if cal.view == "week" else [cal.current_date]
    cols = st.columns(len(days))
    for col, day in zip(cols, days):
        with col:
            head = day.strftime("%a") if cal.view == "week" else day.strftime("%A")
            st.markdown(f"**{head} {day.day}**" + (" · today" if cal.is_today(day) else ""))
            blocks = cal.event_blocks_for_date(day)
            if not blocks:
                st.caption("No events")
            for block in blocks:
                st.caption(block.time_range)
                _render_event_chip(block.event, f"cal_{day.isoformat()}")

    if cal.view == "day":
        with st.expander("Hourly schedule"):
            for slot in time_slots():
                hour_events = [
                    b.event["title"]
                    for b in cal.event_blocks_for_date(cal.current_date)
                    if int(str(b.event.get("event_time", "0")).split(":")[0]) == slot.hour
                ]
                st.markdown(f"`{slot.label:>5}` " + ", ".join(hour_events))


def main() -> None:
    st.set_page_config(page_title=PAGE_TITLE, page_icon=PAGE_ICON, layout="wide")
    if not st.session_state.get("logging_configured"):
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
        st.session_state["logging_configured"] = True
    _ensure_migrations_once()
    _inject_css()
    ctx = _ctx()

    if not ctx.session.is_authenticated():
        _render_auth_page()
        return
    if ctx.profiles.needs_onboarding():
        _render_onboarding_page()
        return

    _render_sidebar()
    _render_notices()
    page = st.session_state.get("nav_page_selector", "dashboard")
    if page == "dashboard":
        _render_dashboard()
    elif page == "materials":
        _render_materials_page()
    elif page == "learn":
        _render_learn_page()
    elif page == "project":
        _render_project_page()
    elif page == "planner":
        _render_planner_page()
    elif page == "calendar":
        _render_calendar_page()
    else:
        _render_dashboard()


if __name__ == "__main__":
    main()
