"""
This module defines the graphical user interface (GUI) for the MediSync application using Streamlit.

It includes functions for rendering all UI components: the authentication page, the patient
dashboard (vitals, adherence, reminders, medications, AI checks), the AI hub (assistant chat
and wound scan), doctor/patient messaging, the pharmacy storefront, the profile page and the
doctor dashboard (patient roster, prescribing, chat).

The main entry point for the UI is `show_main_app`, which routes the signed-in user to the
view selected in the sidebar. Transient UI state (scan results, open sections, chat history
with the assistant) lives in `st.session_state`; business state lives in the session's
`MediSyncService`.
"""
# medisync/gui.py

import base64
import datetime

import pandas as pd
import streamlit as st
from streamlit_autorefresh import st_autorefresh

from medisync import mock_data
from medisync.adherence import (
    adherence_stats, dose_history, low_stock_medications, todays_tasks, weekly_adherence,
)
from medisync.chat import format_date_header, format_time
from medisync.config import CHAT_REFRESH_INTERVAL_SECONDS, REMINDER_REFRESH_INTERVAL_SECONDS
from medisync.models import Vitals, ROLE_DOCTOR, ROLE_PATIENT, DOSE_TAKEN, DOSE_SKIPPED
from medisync.pharmacy import (
    categories, filter_products, products_by_ids, resolve_scan_matches, suggest_drugs,
)

ASSISTANT_GREETING = ("Hello! I am your MediSync assistant. How can I help you with your "
                      "medications or health questions today?")
FREQUENCIES = ["Daily", "2x Daily", "3x Daily", "Weekly", "As needed"]

PATIENT_VIEWS = [
    ("dashboard", "💊 Home"),
    ("ai", "🤖 AI Hub"),
    ("messages", "💬 Messages"),
    ("marketplace", "🛍️ Store"),
    ("profile", "👤 Profile"),
]
DOCTOR_VIEWS = [
    ("dashboard", "🩺 Home"),
    ("profile", "👤 Profile"),
]


# Helpers
def _format_log_time(iso_string):
    """Formats a local ISO timestamp as e.g. 'Jan 01 • 09:15'; returns the input if it cannot be parsed."""
    if not iso_string:
        return "—"
    try:
        return datetime.datetime.fromisoformat(iso_string).strftime("%b %d • %H:%M")
    except ValueError:
        return iso_string


def _encode_upload(uploaded_file):
    """Returns the base64 payload of a Streamlit upload, as sent to the vision model."""
    return base64.b64encode(uploaded_file.getvalue()).decode("ascii")


def _vital_flags(vitals):
    """Maps each vital to the short status label shown under its metric."""
    return {
        "heart_rate": "High" if vitals.heart_rate > 100 else "Normal Resting",
        "blood_pressure": "High BP" if vitals.systolic_bp > 140 else "Optimal",
        "blood_glucose": "Elevated" if vitals.blood_glucose > 140 else "Fasting",
        "oxygen_saturation": "Low Oxygen" if 0 < vitals.oxygen_saturation < 95 else "Normal",
    }


def _interaction_lines(summary):
    """Splits an interaction summary into display lines without bullet markers."""
    lines = []
    for line in (summary or "").split("\n"):
        clean = line.strip().lstrip("-•*").strip()
        if clean:
            lines.append(clean)
    return lines


def _explanation_sections(text):
    """Splits a '###'-sectioned explanation into (title, body) pairs."""
    sections = []
    for section in (text or "").split("###"):
        if not section.strip():
            continue
        title, _, body = section.strip().partition("\n")
        sections.append((title.strip(), body.strip()))
    return sections


def _severity_label(severity):
    if severity >= 7:
        return "High"
    if severity >= 4:
        return "Moderate"
    return "Low"


def _schedule_auto_refresh(key, interval_seconds):
    """Schedules a periodic rerun of the app, used for chat polling and dose reminders.

    Args:
        key (str): A unique key for the autorefresh component.
        interval_seconds (float): The refresh interval in seconds.
    """
    st_autorefresh(interval=int(interval_seconds * 1000), key=key)


def _cached_ai(key, compute):
    """Runs an AI call once per cache key and keeps the result in the session state."""
    cache = st.session_state.setdefault("ai_cache", {})
    if key not in cache:
        cache[key] = compute()
    return cache[key]


def _render_chat_messages(messages, viewer_id, names):
    """Displays stored chat messages grouped under date headers.

    Args:
        messages (list): `StoredChatMessage` objects in ascending order.
        viewer_id (str): The id of the signed-in user; their bubbles are shown as 'user'.
        names (dict): Maps user ids to display names.
    """
    if not messages:
        st.info("No chat history yet. Start the conversation below.")
        return

    last_header = None
    for message in messages:
        header = format_date_header(message.timestamp)
        if header != last_header:
            st.caption(f"— {header} —")
            last_header = header
        mine = message.sender_id == viewer_id
        avatar = "🩺" if message.sender_role == ROLE_DOCTOR else "🙂"
        with st.chat_message("user" if mine else "assistant", avatar=avatar):
            st.markdown(f"**{names.get(message.sender_id, message.sender_id)}**")
            st.write(message.text)
            st.caption(format_time(message.timestamp))


def _render_smart_replies(service, suggestions, sender, receiver_id, key_prefix):
    """Shows AI-suggested replies as one-click send buttons."""
    if not suggestions:
        return
    st.caption("✨ Suggested:")
    cols = st.columns(len(suggestions))
    for idx, (col, suggestion) in enumerate(zip(cols, suggestions)):
        with col:
            if st.button(suggestion, key=f"{key_prefix}_suggestion_{idx}", use_container_width=True):
                service.chat.send_message(sender.id, receiver_id, sender.role, suggestion)
                st.rerun()


# Authentication Page
def _fill_demo_credentials():
    """Pre-fills the login form with the demo account of the selected role."""
    role = st.session_state.get("auth_role", ROLE_PATIENT)
    st.session_state.auth_email = mock_data.DOCTOR_EMAIL if role == ROLE_DOCTOR else mock_data.PATIENT_EMAIL
    st.session_state.auth_password = "password"
    st.session_state.auth_mode = "login"


def _set_auth_mode(mode):
    st.session_state.auth_mode = mode


def show_auth_page(service):
    """Displays the login/sign-up page and signs the user in.

    Args:
        service: The session's `MediSyncService`.
    """
    if "auth_mode" not in st.session_state:
        st.session_state.auth_mode = "login"

    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.markdown("<h1 style='text-align: center;'>MediSync</h1>", unsafe_allow_html=True)
        role = st.radio(
            "I am a",
            [ROLE_PATIENT, ROLE_DOCTOR],
            format_func=lambda r: "Patient" if r == ROLE_PATIENT else "Doctor",
            horizontal=True,
            key="auth_role",
        )
        if role == ROLE_PATIENT:
            st.caption("Manage prescriptions, track adherence, and get instant AI health insights in one secure app.")
        else:
            st.caption("Monitor patient adherence in real-time, screen interactions instantly, and streamline your practice.")

        is_login = st.session_state.auth_mode == "login"
        st.markdown(f"### {'Sign in' if is_login else 'Create an account'}")

        with st.form("auth_form"):
            name = "" if is_login else st.text_input("Full Name", key="auth_name")
            email = st.text_input("Email", key="auth_email")
            password = st.text_input("Password", type="password", key="auth_password")
            submitted = st.form_submit_button("Sign In" if is_login else "Sign Up", use_container_width=True)

        if submitted:
            if not email or not password or (not is_login and not name):
                st.error("Please fill in all fields.")
            elif is_login:
                user = service.login(email, role)
                if user is None:
                    st.error(f"Access Denied: Doctor credentials not found. Try '{mock_data.DOCTOR_EMAIL}'")
                else:
                    st.session_state.current_view = "dashboard"
                    st.rerun()
            else:
                service.signup(name, email)
                st.session_state.current_view = "dashboard"
                st.rerun()

        st.button("Use demo account", on_click=_fill_demo_credentials, use_container_width=True)
        if is_login:
            st.button("New patient? Create an account", on_click=_set_auth_mode, args=("signup",))
        else:
            st.button("Already registered? Sign in", on_click=_set_auth_mode, args=("login",))


# Main Application UI
def show_main_app(service):
    """
    The main application router that displays the correct view for the signed-in user.

    Args:
        service: The session's `MediSyncService`.
    """
    user = service.current_user
    views = PATIENT_VIEWS if user.is_patient else DOCTOR_VIEWS
    view_keys = [key for key, _ in views]
    if st.session_state.get("current_view") not in view_keys:
        st.session_state.current_view = "dashboard"

    with st.sidebar:
        st.markdown("## MediSync")
        st.caption(f"Signed in as {user.name}")
        for key, label in views:
            if key == "marketplace" and service.cart_count:
                label = f"{label} ({service.cart_count})"
            button_type = "primary" if st.session_state.current_view == key else "secondary"
            if st.button(label, key=f"nav_{key}", use_container_width=True, type=button_type):
                st.session_state.current_view = key
                st.rerun()
        st.divider()
        if st.button("Log Out", key="logout_btn", use_container_width=True):
            service.logout()
            for key in ("ai_cache", "ai_messages", "scanned_med", "pill_result", "wound_result",
                        "scan_items", "order_success", "reminders_enabled"):
                st.session_state.pop(key, None)
            st.rerun()

    view = st.session_state.current_view
    titles = {
        "ai": "Medical Assistant",
        "marketplace": "Pharmacy Store",
        "messages": "Doctor Chat",
        "profile": "My Profile",
    }
    default_title = "Doctor Portal" if user.is_doctor else "My Health"
    st.markdown(f"## {titles.get(view, default_title)}")
    st.caption(f"Welcome back, {user.name}")
    st.divider()

    if user.is_patient:
        if view == "dashboard":
            _render_patient_dashboard(service)
        elif view == "ai":
            _render_ai_page(service)
        elif view == "messages":
            _render_patient_chat_page(service)
        elif view == "marketplace":
            _render_marketplace_page(service)
        elif view == "profile":
            _render_profile_page(service)
    else:
        if view == "dashboard":
            _render_doctor_dashboard(service)
        elif view == "profile":
            _render_profile_page(service)


# Patient dashboard
def _run_reminders(service):
    """Polls the reminder scheduler and raises a toast for every due dose."""
    _schedule_auto_refresh("reminder_refresh", REMINDER_REFRESH_INTERVAL_SECONDS)
    for reminder in service.reminders.check(service.medications, service.logs, datetime.datetime.now()):
        st.toast(f"**{reminder.title}** — {reminder.body}", icon="⏰")


def _render_health_snapshot(service):
    """Shows the latest vitals and the form for logging new ones."""
    user = service.current_user
    vitals = getattr(user.details, "vitals", None) or Vitals()
    flags = _vital_flags(vitals)

    st.subheader("Health Snapshot")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Heart Rate (bpm)", vitals.heart_rate or "--")
    c1.caption(flags["heart_rate"])
    c2.metric("Blood Pressure (mmHg)", f"{vitals.systolic_bp or '--'}/{vitals.diastolic_bp or '--'}")
    c2.caption(flags["blood_pressure"])
    c3.metric("Glucose (mg/dL)", vitals.blood_glucose or "--")
    c3.caption(flags["blood_glucose"])
    c4.metric("SpO2 (%)", vitals.oxygen_saturation or "--")
    c4.caption(flags["oxygen_saturation"])

    with st.expander("➕ Log Vitals"):
        if st.button("AI Quick Measure", key="simulate_vitals"):
            with st.spinner("Measuring..."):
                st.session_state.vitals_form = service.simulate_vitals()
        draft = st.session_state.get("vitals_form") or vitals
        with st.form("vitals_form_fields"):
            col_a, col_b = st.columns(2)
            heart_rate = col_a.number_input("Heart Rate (bpm)", min_value=0, value=int(draft.heart_rate))
            glucose = col_b.number_input("Blood Glucose (mg/dL)", min_value=0, value=int(draft.blood_glucose))
            systolic = col_a.number_input("Systolic BP", min_value=0, value=int(draft.systolic_bp))
            diastolic = col_b.number_input("Diastolic BP", min_value=0, value=int(draft.diastolic_bp))
            spo2 = col_a.number_input("SpO2 (%)", min_value=0, max_value=100, value=int(draft.oxygen_saturation))
            temperature = col_b.number_input("Temperature (°C)", min_value=0.0, step=0.1, value=float(draft.temperature))
            submitted = st.form_submit_button("Save Vitals")
        if submitted:
            service.update_vitals(Vitals(heart_rate, systolic, diastolic, glucose, spo2, temperature))
            st.session_state.pop("vitals_form", None)
            st.success("Vitals saved.")
            st.rerun()


def _render_adherence(service, today):
    """Weekly taken/missed chart and the overall adherence score."""
    stats = adherence_stats(service.logs)
    chart_col, score_col = st.columns([2, 1])
    with chart_col:
        st.caption("ADHERENCE HISTORY")
        chart_df = pd.DataFrame(weekly_adherence(service.logs, today))
        if not chart_df.empty:
            st.bar_chart(chart_df.set_index("name")[["taken", "missed"]])
    with score_col:
        st.metric("Weekly Score", f"{stats['adherence']}%")
        st.caption(f"✨ {stats['streak']} day streak")


def _render_interaction_alert(service):
    """Runs the interaction check for the current medication list and shows any warning."""
    meds = service.medications
    if len(meds) < 2:
        return
    med_key = ("interactions",) + tuple(sorted(f"{m.name}|{m.dosage}" for m in meds))
    report = _cached_ai(med_key, lambda: service.assistant.check_drug_interactions(meds))
    if not report.has_interactions:
        return

    with st.expander("⚠️ Potential drug interactions detected", expanded=False):
        for line in _interaction_lines(report.summary):
            st.markdown(f"- {line}")
        explain_key = ("explanation",) + med_key[1:]
        if st.session_state.get("show_explanation"):
            if st.button("Hide Analysis", key="hide_explanation"):
                st.session_state.show_explanation = False
                st.rerun()
            with st.spinner("Analyzing..."):
                text = _cached_ai(explain_key, lambda: service.assistant.get_detailed_interaction_explanation(meds))
            for title, body in _explanation_sections(text):
                st.markdown(f"**{title}**")
                st.write(body)
        elif st.button("Analyze with AI", key="explain_interactions"):
            st.session_state.show_explanation = True
            st.rerun()


def _render_diet_section(service):
    """AI diet plan based on the patient's conditions and medications."""
    with st.expander("🥗 Personalized diet plan"):
        conditions = getattr(service.current_user.details, "conditions", [])
        diet_key = ("diet",) + tuple(conditions) + tuple(m.name for m in service.medications)
        cache = st.session_state.setdefault("ai_cache", {})
        if diet_key not in cache:
            if st.button("Generate diet plan", key="diet_btn"):
                with st.spinner("Preparing your plan..."):
                    _cached_ai(diet_key, lambda: service.assistant.get_dietary_recommendations(
                        conditions, service.medications))
                st.rerun()
            return
        plan = cache[diet_key]
        if plan.get("summary"):
            st.info(plan["summary"])
        good_col, avoid_col = st.columns(2)
        with good_col:
            st.markdown("**👍 Recommended**")
            for item in plan.get("recommended", []):
                st.markdown(f"- **{item.get('food', '')}** — {item.get('reason', '')}")
        with avoid_col:
            st.markdown("**👎 Limit / Avoid**")
            for item in plan.get("avoid", []):
                st.markdown(f"- **{item.get('food', '')}** — {item.get('reason', '')}")


def _render_today_tab(service, today):
    col_title, col_toggle = st.columns([3, 1])
    col_title.markdown(f"**Schedule for {today.strftime('%A, %b %d')}**")
    reminders_on = col_toggle.toggle("🔔 Reminders", key="reminders_enabled")
    if reminders_on:
        _run_reminders(service)

    tasks = todays_tasks(service.medications, service.logs, today)
    if not tasks:
        st.info("No medications scheduled for today.")
        return
    for idx, task in enumerate(tasks):
        med = task.medication
        row = st.columns([1, 4, 2])
        row[0].markdown(f"**{task.scheduled_time}**")
        row[1].markdown(f"**{med.name}** {med.dosage}  \n{med.instructions}")
        if task.done:
            icon = "✅" if task.log.status == DOSE_TAKEN else "✖️" if task.log.status == DOSE_SKIPPED else "⏳"
            row[2].markdown(f"{icon} {task.log.status.capitalize()}")
            continue
        if task.log is not None:
            row[1].caption("⏳ Pending")
        with row[2]:
            take_col, skip_col = st.columns(2)
            if take_col.button("Take", key=f"take_{med.id}_{task.scheduled_time}_{idx}", type="primary"):
                service.take_dose(med.id, task.scheduled_time)
                st.rerun()
            if skip_col.button("Skip", key=f"skip_{med.id}_{task.scheduled_time}_{idx}"):
                service.skip_dose(med.id, task.scheduled_time)
                st.rerun()


def _render_add_medication_form(service):
    with st.form("add_med_form", clear_on_submit=True):
        name = st.text_input("Medication name")
        dosage = st.text_input("Dosage", placeholder="e.g. 10mg")
        frequency = st.selectbox("Frequency", FREQUENCIES)
        times = st.text_input("Times (comma separated)", value="08:00")
        instructions = st.text_area("Instructions")
        submitted = st.form_submit_button("Add Medication")
    if submitted:
        if not name.strip():
            st.error("Medication name is required.")
            return
        service.add_medication(service.build_medication(
            name, dosage, frequency, times, instructions, prescribed_by=service.current_user.id))
        st.success(f"{name.strip()} added.")
        st.rerun()


def _render_prescription_import(service):
    """Scan a prescription label, review the extracted fields and add the medication."""
    upload = st.file_uploader("Prescription photo", type=["png", "jpg", "jpeg"], key="import_upload")
    if upload is not None and st.button("Scan Prescription", key="scan_import"):
        with st.spinner("Reading prescription..."):
            result = service.assistant.extract_medication_details(_encode_upload(upload))
        if result:
            st.session_state.scanned_med = result
        else:
            st.error("Could not extract medication details.")

    scanned = st.session_state.get("scanned_med")
    if not scanned:
        return
    with st.form("confirm_import_form"):
        name = st.text_input("Name", value=scanned["name"])
        dosage = st.text_input("Dosage", value=scanned["dosage"])
        frequency = st.text_input("Frequency", value=scanned["frequency"])
        times = st.text_input("Times", value=", ".join(scanned["times"]))
        instructions = st.text_area("Instructions", value=scanned["instructions"])
        confirmed = st.form_submit_button("Add to My Meds")
    if confirmed:
        service.add_medication(service.build_medication(
            name, dosage, frequency, times, instructions, prescribed_by="AI-Scan"))
        st.session_state.pop("scanned_med", None)
        st.success("Medication imported.")
        st.rerun()


def _render_pill_verification(service):
    upload = st.file_uploader("Pill photo", type=["png", "jpg", "jpeg"], key="pill_upload")
    if upload is not None:
        st.image(upload, width=200)
        if st.button("Identify Pill", key="identify_pill"):
            with st.spinner("Analyzing pill..."):
                st.session_state.pill_result = service.assistant.identify_pill(_encode_upload(upload))
    result = st.session_state.get("pill_result")
    if result:
        st.markdown(f"**{result['name']}** · confidence: {result['confidence']}")
        st.write(result["description"])
        if result.get("warning"):
            st.warning(result["warning"])


def _render_meds_tab(service):
    with st.expander("➕ Add medication manually"):
        _render_add_medication_form(service)
    with st.expander("📄 Import from prescription scan"):
        _render_prescription_import(service)
    with st.expander("🔍 Verify a pill"):
        _render_pill_verification(service)

    if not service.medications:
        st.info("No medications yet.")
        return
    for med in service.medications:
        with st.container(border=True):
            info_col, stock_col, action_col = st.columns([4, 1, 1])
            info_col.markdown(f"**{med.name}** {med.dosage} · {med.frequency}")
            stock_label = f"⚠️ {med.stock} left" if med.stock <= 5 else f"{med.stock} left"
            stock_col.markdown(stock_label)
            refill_label = "Refill Now" if med.stock <= 5 else "Refill"
            if action_col.button(refill_label, key=f"refill_{med.id}"):
                service.request_refill(med.id)
                st.toast(f"{med.name} refill added to cart", icon="🛒")
            with st.expander("Details"):
                st.write(f"**Schedule:** {', '.join(med.times)}")
                st.write(f"**Instructions:** {med.instructions or '—'}")
                st.write(f"**Started:** {med.start_date}")
                st.write(f"**Status:** {med.status.capitalize()}")
                st.write(f"**Prescribed by:** {med.prescribed_by or '—'}")


def _render_history_tab(service):
    logs = dose_history(service.logs)
    if not logs:
        st.info("No doses logged yet.")
        return
    names = {m.id: m.name for m in service.medications}
    history_df = pd.DataFrame([
        {
            "Medication": names.get(log.medication_id, "Unknown"),
            "Scheduled": _format_log_time(log.scheduled_time),
            "Taken": _format_log_time(log.taken_time),
            "Status": log.status.capitalize(),
        }
        for log in logs
    ])
    st.dataframe(history_df, use_container_width=True, hide_index=True)


def _render_patient_dashboard(service):
    """Renders the patient's home view."""
    today = service.today()
    _render_health_snapshot(service)
    _render_adherence(service, today)

    low_stock = low_stock_medications(service.medications)
    if low_stock:
        names = ", ".join(f"{m.name} ({m.stock} left)" for m in low_stock)
        st.error(f"Low stock: {names}. Refill soon to avoid missing doses.")

    _render_interaction_alert(service)
    _render_diet_section(service)

    today_tab, meds_tab, history_tab = st.tabs(["Today", "My Meds", "History"])
    with today_tab:
        _render_today_tab(service, today)
    with meds_tab:
        _render_meds_tab(service)
    with history_tab:
        _render_history_tab(service)


# AI hub
def _render_ai_page(service):
    """Renders the assistant chat and the wound scan."""
    mode = st.radio("Mode", ["Assistant", "Wound Scan"], horizontal=True, key="ai_mode",
                    label_visibility="collapsed")
    if mode == "Assistant":
        if "ai_messages" not in st.session_state:
            st.session_state.ai_messages = [{"role": "model", "text": ASSISTANT_GREETING}]
        for message in st.session_state.ai_messages:
            with st.chat_message("user" if message["role"] == "user" else "assistant"):
                st.write(message["text"])

        with st.form("assistant_form", clear_on_submit=True):
            text = st.text_input("Ask about meds, side effects...", key="assistant_input")
            sent = st.form_submit_button("Send")
        st.caption("AI provides info, not diagnosis. Consult a doctor for emergencies.")
        if sent and text.strip():
            history = [{"role": m["role"], "parts": [{"text": m["text"]}]} for m in st.session_state.ai_messages]
            with st.spinner("Thinking..."):
                reply = service.assistant.send_chat_message(history, text.strip())
            st.session_state.ai_messages.append({"role": "user", "text": text.strip()})
            st.session_state.ai_messages.append({"role": "model", "text": reply})
            st.rerun()
        return

    upload = st.file_uploader("Upload a photo of the wound", type=["png", "jpg", "jpeg"], key="wound_upload")
    if upload is None:
        st.session_state.pop("wound_result", None)
        return
    st.image(upload, width=300)
    if st.button("Analyze Wound", key="analyze_wound", type="primary"):
        with st.spinner("Analyzing image..."):
            st.session_state.wound_result = service.assistant.analyze_wound_image(_encode_upload(upload))
    result = st.session_state.get("wound_result")
    if result:
        severity = int(result["severity"] or 0)
        st.metric("Severity", f"{severity}/10", _severity_label(severity), delta_color="off")
        st.progress(min(max(severity, 0), 10) / 10)
        st.write(result["analysis"])
        st.markdown("**Recommended first aid**")
        for step in result["recommendations"]:
            st.markdown(f"- {step}")
        if severity >= 7:
            st.error("This looks serious. Seek medical attention promptly.")


# Messaging
def _render_patient_chat_page(service):
    """Renders the patient's conversation with their doctor."""
    user = service.current_user
    doctor = mock_data.mock_doctor()
    st.markdown(f"**{doctor.name}** · {doctor.details.specialty}")

    messages = service.chat.get_chat_history(user.id, doctor.id)
    _render_chat_messages(messages, user.id, {user.id: user.name, doctor.id: doctor.name})

    last = messages[-1] if messages else None
    if last is not None and last.sender_role == ROLE_DOCTOR:
        suggestions = _cached_ai(("replies", last.id), lambda: service.assistant.generate_smart_replies(
            last.text, ROLE_PATIENT))
        _render_smart_replies(service, suggestions, user, doctor.id, "patient")

    with st.form("patient_chat_form", clear_on_submit=True):
        text = st.text_input(f"Message {doctor.name}", placeholder="Type your message...")
        sent = st.form_submit_button("Send")
    if sent and text.strip():
        service.chat.send_message(user.id, doctor.id, ROLE_PATIENT, text)
        st.rerun()

    _schedule_auto_refresh(f"patient_chat_refresh_{user.id}", CHAT_REFRESH_INTERVAL_SECONDS)
    st.caption(f"Chat updates automatically every {int(CHAT_REFRESH_INTERVAL_SECONDS)} seconds.")


# Marketplace
def _render_scan_order(service):
    """Quick order: match a prescription photo against the catalog and add the matches to the cart."""
    with st.expander("📷 Quick Order from prescription"):
        upload = st.file_uploader("Prescription photo", type=["png", "jpg", "jpeg"], key="order_upload")
        if upload is not None and st.button("Scan & Match", key="scan_order"):
            with st.spinner("Matching products..."):
                matches = service.assistant.analyze_prescription_and_match(_encode_upload(upload), service.products)
            st.session_state.scan_items = resolve_scan_matches(matches, service.products)
            if not st.session_state.scan_items:
                st.warning("No matching products found.")

        items = st.session_state.get("scan_items")
        if not items:
            return
        for idx, item in enumerate(items):
            name_col, minus_col, qty_col, plus_col = st.columns([4, 1, 1, 1])
            name_col.write(f"{item['product'].name} · ${item['product'].price:.2f}")
            if minus_col.button("−", key=f"scan_minus_{idx}"):
                item["quantity"] = max(1, item["quantity"] - 1)
                st.rerun()
            qty_col.write(str(item["quantity"]))
            if plus_col.button("+", key=f"scan_plus_{idx}"):
                item["quantity"] += 1
                st.rerun()
        if st.button("Add all to cart", key="scan_add_all", type="primary"):
            for item in items:
                service.add_to_cart(item["product"], item["quantity"])
            st.session_state.pop("scan_items", None)
            st.rerun()


def _render_cart(service):
    with st.sidebar:
        st.markdown(f"### 🛒 Cart ({service.cart_count})")
        if st.session_state.get("order_success"):
            st.success(st.session_state.order_success)
        if not service.cart:
            st.caption("Your cart is empty.")
            return
        for item in list(service.cart):
            st.markdown(f"**{item.name}**  \n${item.price:.2f} × {item.quantity}")
            minus_col, plus_col, remove_col = st.columns(3)
            if minus_col.button("−", key=f"cart_minus_{item.id}"):
                service.update_cart_quantity(item.id, -1)
                st.rerun()
            if plus_col.button("+", key=f"cart_plus_{item.id}"):
                service.update_cart_quantity(item.id, 1)
                st.rerun()
            if remove_col.button("🗑", key=f"cart_remove_{item.id}"):
                service.remove_from_cart(item.id)
                st.rerun()
        st.markdown(f"**Total: ${service.cart_total:.2f}**")
        if st.button("Checkout", key="checkout_btn", type="primary", use_container_width=True):
            order = service.checkout()
            st.session_state.order_success = (
                f"Order placed! {len(order['items'])} item(s), ${order['total']:.2f}."
            )
            st.rerun()


def _render_marketplace_page(service):
    """Renders the pharmacy storefront."""
    _render_cart(service)
    _render_scan_order(service)

    search_col, button_col = st.columns([4, 1])
    query = search_col.text_input("Search medicines...", key="store_query")
    smart = button_col.button("✨ Smart Search", key="smart_search", use_container_width=True)
    category = st.radio("Category", categories(service.products), horizontal=True, key="store_category")

    if smart and query.strip():
        with st.spinner("Searching..."):
            ids = service.assistant.smart_product_search(query, service.products)
        st.session_state.smart_results = (query, ids)

    smart_results = st.session_state.get("smart_results")
    if smart_results and smart_results[0] == query and query.strip():
        products = products_by_ids(service.products, smart_results[1])
        st.caption(f"AI matches for “{query}”")
    else:
        products = filter_products(service.products, query, category)

    if not products:
        st.info("No products found.")
        return
    for start in range(0, len(products), 3):
        cols = st.columns(3)
        for col, product in zip(cols, products[start:start + 3]):
            with col.container(border=True):
                st.image(product.image, use_container_width=True)
                st.markdown(f"**{product.name}**")
                st.caption(f"{product.category} · {product.description}")
                st.markdown(f"**${product.price:.2f}**")
                if product.stock == 0:
                    st.button("Out of stock", key=f"add_{product.id}", disabled=True)
                elif st.button("Add to cart", key=f"add_{product.id}"):
                    service.add_to_cart(product)
                    st.session_state.pop("order_success", None)
                    st.toast(f"{product.name} added to cart", icon="🛒")
                    st.rerun()


# Profile
def _render_profile_page(service):
    """Renders the profile page for viewing and editing personal details."""
    user = service.current_user
    st.image(user.avatar or "https://picsum.photos/200", width=96)
    st.write(f"**Email:** {user.email}")
    st.write(f"**Role:** {user.role.capitalize()}")

    if user.is_doctor:
        st.write(f"**Specialty:** {user.details.specialty}")
        st.write(f"**License:** {user.details.license_number}")

    details = user.details if user.is_patient else None
    with st.form("profile_form"):
        name = st.text_input("Full Name", value=user.name)
        weight = conditions = allergies = ""
        if details is not None:
            weight = st.text_input("Weight (kg)", value="" if details.weight is None else str(details.weight))
            conditions = st.text_input("Conditions (comma separated)", value=", ".join(details.conditions))
            allergies = st.text_input("Allergies (comma separated)", value=", ".join(details.allergies))
        submitted = st.form_submit_button("Save Profile")
    if submitted:
        try:
            service.update_profile(name, weight, conditions, allergies)
        except ValueError:
            st.error("Weight must be a number.")
        else:
            st.success("Profile updated successfully!")


# Doctor dashboard
def _pick_drug(name):
    st.session_state.prescribe_drug = name


def _render_patient_overview(service, patient):
    details = patient.details
    st.markdown(f"**DOB:** {details.dob or '—'} · **Weight:** {details.weight or '—'} kg")
    st.markdown(f"**Conditions:** {', '.join(details.conditions) or '—'}")
    st.markdown(f"**Allergies:** {', '.join(details.allergies) or '—'}")

    on_record = patient.id == service.records_patient_id
    meds = service.medications if on_record else []
    logs = service.logs if on_record else []
    stats = adherence_stats(logs)
    c1, c2, c3 = st.columns(3)
    c1.metric("Adherence", f"{stats['adherence']}%")
    c2.metric("Active meds", sum(1 for m in meds if m.is_active))
    c3.metric("Low stock", len(low_stock_medications(meds)))

    chart_df = pd.DataFrame(weekly_adherence(logs, service.today()))
    if not chart_df.empty:
        st.area_chart(chart_df.set_index("name")[["taken", "missed"]])

    st.markdown("**Active Medications**")
    for med in meds:
        st.markdown(f"- {med.name} {med.dosage} · {med.frequency} at {', '.join(med.times)} ({med.stock} left)")

    with st.expander("➕ Prescribe Medication"):
        drug_name = st.text_input("Drug name", key="prescribe_drug")
        for suggestion in suggest_drugs(drug_name, mock_data.COMMON_DRUGS):
            if suggestion != drug_name:
                st.button(suggestion, key=f"drug_suggestion_{suggestion}",
                          on_click=_pick_drug, args=(suggestion,))
        with st.form("prescribe_form", clear_on_submit=True):
            dosage = st.text_input("Dosage", placeholder="e.g. 20mg")
            frequency = st.selectbox("Frequency", FREQUENCIES)
            dose_time = st.time_input("Time", value=datetime.time(9, 0))
            instructions = st.text_area("Instructions")
            submitted = st.form_submit_button("Send Prescription")
        if submitted:
            if not drug_name.strip():
                st.error("Drug name is required.")
            else:
                med = service.build_medication(drug_name, dosage, frequency, [dose_time.strftime("%H:%M")],
                                               instructions, prescribed_by=service.current_user.id)
                if service.prescribe(med, patient.id):
                    st.success("Prescription sent successfully.")
                else:
                    st.error("This patient's records are not available in this session.")


def _render_doctor_chat(service, patient):
    doctor = service.current_user
    header_col, delete_col = st.columns([4, 1])
    header_col.markdown(f"**Chat with {patient.name}**")
    if delete_col.button("🗑 Delete chat", key="delete_chat"):
        st.session_state.confirm_delete_chat = True
    if st.session_state.get("confirm_delete_chat"):
        st.warning("Delete chat history with this patient?")
        yes_col, no_col = st.columns(2)
        if yes_col.button("Delete", key="confirm_delete_yes", type="primary"):
            service.chat.delete_chat_history(doctor.id, patient.id)
            st.session_state.confirm_delete_chat = False
            st.rerun()
        if no_col.button("Cancel", key="confirm_delete_no"):
            st.session_state.confirm_delete_chat = False
            st.rerun()

    messages = service.chat.get_chat_history(doctor.id, patient.id)
    _render_chat_messages(messages, doctor.id, {doctor.id: doctor.name, patient.id: patient.name})

    last = messages[-1] if messages else None
    if last is not None and last.sender_role == ROLE_PATIENT:
        suggestions = _cached_ai(("replies", last.id), lambda: service.assistant.generate_smart_replies(
            last.text, ROLE_DOCTOR))
        _render_smart_replies(service, suggestions, doctor, patient.id, "doctor")

    with st.form("doctor_chat_form", clear_on_submit=True):
        text = st.text_input("Type a message to patient...")
        sent = st.form_submit_button("Send")
    if sent and text.strip():
        service.chat.send_message(doctor.id, patient.id, ROLE_DOCTOR, text)
        st.rerun()

    _schedule_auto_refresh(f"doctor_chat_refresh_{patient.id}", CHAT_REFRESH_INTERVAL_SECONDS)


def _render_doctor_dashboard(service):
    """Renders the doctor's roster with the selected patient's overview and chat."""
    doctor = service.current_user
    patients = service.patients_for(doctor)
    if not patients:
        st.info("No patients on your roster yet.")
        return

    search = st.text_input("Search patients", key="patient_search")
    matching = [p for p in patients if search.lower() in p.name.lower()] if search else patients
    if not matching:
        st.info("No patients match your search.")
        return
    by_id = {p.id: p for p in matching}
    patient_id = st.selectbox("Patient", list(by_id), format_func=lambda pid: by_id[pid].name,
                              key="selected_patient")
    patient = by_id[patient_id]

    partners = service.chat.list_conversation_partners(doctor.id)
    if patient.id in partners:
        st.caption("💬 Active conversation")

    overview_tab, chat_tab = st.tabs(["Overview", "Chat"])
    with overview_tab:
        _render_patient_overview(service, patient)
    with chat_tab:
        _render_doctor_chat(service, patient)
