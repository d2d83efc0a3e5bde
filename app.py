"""Nova Academy Mock UTME: timed CBT exam client."""
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_bank, get_settings, get_store
from mockexam.clock import format_time
from mockexam.models import Step, Track
from mockexam.session import ExamSession

st.set_page_config(page_title="Nova Academy Mock UTME", layout="wide")


def get_session() -> ExamSession:
    """One ExamSession per browser session; the store and bank are shared across sessions."""
    if "exam" not in st.session_state:
        st.session_state["exam"] = ExamSession.from_settings(get_bank(), get_store(), get_settings())
    return st.session_state["exam"]


session = get_session()
st.sidebar.title("Nova Academy")
st.sidebar.caption("Mock UTME · CBT")

# Catch up the countdown on every rerun; expiry moves the session to finalizing
if session.step is Step.IN_PROGRESS:
    session.sync_clock()

# ----- Welcome -----
if session.step is Step.WELCOME:
    st.header("Mock UTME")
    is_open = session.registration_open()
    closes_at = session.gate.closes_at
    if closes_at is not None:
        when = closes_at.strftime("%d %b %Y, %H:%M %Z")
        if is_open:
            st.caption(f"Registration closes {when}")
        else:
            st.error(f"Registration closed on {when}")

        @st.fragment(run_every="15s")
        def deadline_watch():
            if session.registration_open() != is_open:
                st.rerun()

        deadline_watch()

    tracks = list(Track)
    track = st.radio(
        "Track",
        tracks,
        index=tracks.index(session.track),
        format_func=lambda t: t.value,
        horizontal=True,
        key="track_selector",
    )
    if track is not session.track:
        session.select_track(track)
    st.caption(f"{len(session.active_questions)} questions · {session.clock.total_seconds // 60} minutes")

    with st.form("welcome_form"):
        name = st.text_input("Full name")
        course = st.text_input("Intended course")
        code = st.text_input("Access code", placeholder="NV-0000-XX").upper()
        begin = st.form_submit_button("Start exam", type="primary", disabled=not is_open, use_container_width=True)

    if begin:
        with st.spinner("Verifying..."):
            admission = asyncio.run(session.start(name, course, code))
        if admission is not None and admission.admitted:
            st.rerun()
    if session.welcome_error:
        st.error(session.welcome_error)

    if st.button("Admin"):
        session.open_admin()
        st.rerun()
    st.stop()

# ----- Exam -----
if session.step is Step.IN_PROGRESS:

    @st.fragment(run_every="1s")
    def timer():
        session.sync_clock()
        if session.step is not Step.IN_PROGRESS:
            st.rerun()
        remaining = format_time(session.clock.remaining)
        if session.clock.is_low:
            st.error(f"Time left {remaining}")
        else:
            st.metric("Time left", remaining)

    with st.sidebar:
        timer()

    total = session.total_questions
    answered = session.answered_count
    st.sidebar.progress(answered / total if total else 0)
    st.sidebar.caption(f"{answered}/{total} answered")
    st.sidebar.write(f"**{session.candidate_name}** · {session.track.short_name}")

    q = session.current_question
    st.subheader(f"Question {session.position + 1} of {total}")
    st.caption(q.subject.value)
    st.write(q.text)

    labels = list(q.labels)
    option_text = {o.label: o.text for o in q.options}
    chosen = session.ledger.get(q.id)

    def _record(qid=q.id):
        label = st.session_state.get(f"q_{qid}")
        if label is not None and session.step is Step.IN_PROGRESS:
            session.select_option(label, question_id=qid)

    st.radio(
        "Choose one:",
        labels,
        index=labels.index(chosen) if chosen in labels else None,
        format_func=lambda label: f"({label}) {option_text[label]}",
        key=f"q_{q.id}",
        on_change=_record,
    )

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        if st.button("Previous", disabled=session.position == 0):
            session.previous_question()
            st.rerun()
    with col2:
        if st.button("Next", disabled=session.position >= total - 1):
            session.next_question()
            st.rerun()
    with col3:
        ready = st.checkbox("I have finished and want to submit")
        if st.button("Submit exam", type="primary", disabled=not ready):
            with st.spinner("Submitting..."):
                asyncio.run(session.submit(confirmed=ready))
            st.rerun()

    st.divider()
    st.caption("Question navigator")
    per_row = 10
    for start in range(0, total, per_row):
        cols = st.columns(per_row)
        for offset, col in enumerate(cols):
            i = start + offset
            if i >= total:
                break
            qid = session.active_questions[i].id
            mark = "●" if session.ledger.is_answered(qid) else "○"
            with col:
                if st.button(f"{i + 1} {mark}", key=f"nav_{i}", disabled=i == session.position):
                    session.go_to(i)
                    st.rerun()
    st.stop()

# ----- Finalizing -----
if session.step is Step.FINALIZING:
    st.header("Submitting your exam")
    if session.last_error is None:
        with st.spinner("Saving your result..."):
            asyncio.run(session.submit())
        st.rerun()
    st.error(session.last_error)
    st.caption(f"{session.answered_count}/{session.total_questions} answers kept.")
    if st.button("Retry submission", type="primary"):
        with st.spinner("Saving your result..."):
            asyncio.run(session.submit())
        st.rerun()
    st.stop()

# ----- Result -----
if session.step is Step.COMPLETE:
    result = session.result
    summary = session.score_summary
    st.header("Result statement")
    if summary.passed:
        st.success("PASSED")
    else:
        st.info("COMPLETED")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Score", f"{summary.score} / {summary.total_possible}")
    with col2:
        st.metric("Accuracy", f"{summary.percentage}%")
    with col3:
        st.metric("Track", result.track.short_name)
    st.write(f"**{result.name}** · {result.course} · {result.access_code}")
    st.caption(f"Result ID {result.id} · {datetime.fromtimestamp(result.timestamp / 1000):%d %b %Y %H:%M}")

    rows = [
        {"Subject": subject, "Questions": s["total"], "Answered": s["answered"], "Correct": s["correct"]}
        for subject, s in session.breakdown().items()
    ]
    st.dataframe(rows, use_container_width=True, hide_index=True)

    if st.button("Back to start"):
        session.return_to_welcome()
        st.rerun()
    st.stop()

# ----- Admin -----
if session.step is Step.ADMIN_LOGIN:
    st.header("Admin")
    with st.form("admin_login"):
        password = st.text_input("Password", type="password")
        login = st.form_submit_button("Log in", type="primary")
    if login and session.admin_login(password):
        st.rerun()
    if session.admin_error:
        st.error(session.admin_error)
    if st.button("Back"):
        session.leave_admin()
        st.rerun()
    st.stop()

if session.step is Step.ADMIN_PANEL:
    st.header("Exam records")
    try:
        results = asyncio.run(session.load_admin_results())
    except Exception as e:
        st.error(f"Could not load results. Check the store settings in .env. {e}")
        results = []
    if results is not None:
        st.metric("Submissions", len(results))
        rows = [
            {
                "ID": r.id,
                "Name": r.name,
                "Course": r.course,
                "Track": r.track.short_name,
                "Code": r.access_code,
                "Score": f"{r.score}/{r.total_possible}",
                "Accuracy": f"{r.percentage}%",
                "Submitted": datetime.fromtimestamp(r.timestamp / 1000).strftime("%Y-%m-%d %H:%M"),
            }
            for r in results
        ]
        st.dataframe(rows, use_container_width=True, hide_index=True)
    if st.button("Log out"):
        session.leave_admin()
        st.rerun()
