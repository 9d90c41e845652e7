# app.py  ―  Streamlit GUI for the court rotation
from coach_commentary import get_match_analysis
from rotation_engine import COURT, QUEUE, CourtRotation, RotationConfig, TIER_SCORES
from streamlit_autorefresh import st_autorefresh
import pandas as pd
import streamlit as st

st.set_page_config(
    page_title="Doubles Court Rotation", page_icon="🏸", layout="wide"
)

st_autorefresh(interval=9 * 60 * 1000, limit=None, key="keep_alive")

st.markdown(
    """
    <style>
      .court-block{border:3px solid var(--primary-color, #1f77b4);border-radius:8px;padding:0.4rem 0.8rem;margin-bottom:0.5rem;}
      .court-block.idle{border-style:dashed;opacity:0.7;}
      .court-line{font-size:1.4rem;font-weight:600;margin-bottom:0.2rem;}
      .queue-line{font-size:1.1rem;margin-top:0.2rem;}
      .empty-seat{color:#999;font-style:italic;}
    </style>
    """,
    unsafe_allow_html=True,
)

LEVELS = [str(n) for n in range(1, 19)] + list(TIER_SCORES)


def rebuild_engine(court_count: int, old: CourtRotation = None) -> CourtRotation:
    """New engine for a new court count; the roster and its stats carry over."""
    engine = CourtRotation(RotationConfig(court_count=court_count, auto_reconcile=False))
    if old is not None:
        for p in old.players.values():
            moved = engine.add_player(p.name, level=p.level, gender=p.gender, player_id=p.id)
            moved.games_played, moved.last_match_time = p.games_played, p.last_match_time
            moved.is_paused = p.is_paused
    engine.config.auto_reconcile = True
    engine.reconcile()
    return engine


def seat_html(player) -> str:
    if player is None:
        return '<span class="empty-seat">empty</span>'
    return f"{player.name} ({player.level})"


def show(result):
    ok, msg = result
    if not ok and msg:
        st.session_state.flash = msg
    st.rerun()


# ──────────────────────────────────
# Sidebar: courts, roster, reset
# ──────────────────────────────────
courts = st.sidebar.number_input("Courts", 1, 8, 2, step=1)

if "engine" not in st.session_state:
    st.session_state.engine = rebuild_engine(int(courts))
    st.session_state.C = courts
    st.session_state.analysis = {}
    st.session_state.flash = ""

# court count changed: rebuild, keep the roster
if courts != st.session_state.C:
    st.session_state.engine = rebuild_engine(int(courts), st.session_state.engine)
    st.session_state.C = courts
    st.session_state.analysis = {}
    st.rerun()

engine: CourtRotation = st.session_state.engine

with st.sidebar.form("add_player", clear_on_submit=True):
    st.subheader("Add player")
    name = st.text_input("Name")
    level = st.selectbox("Level", LEVELS, index=7)
    gender = st.radio("Gender", ["male", "female"], horizontal=True)
    if st.form_submit_button("➕ Add"):
        try:
            engine.add_player(name, level=level, gender=gender)
        except ValueError as e:
            st.session_state.flash = str(e)
        st.rerun()

st.sidebar.subheader("Roster")
roster_df = pd.DataFrame(
    [
        {
            "Name": p.name,
            "Level": p.level,
            "Games": p.games_played,
            "Where": "paused" if p.is_paused else (engine.player_location(p.id) or "rest"),
        }
        for p in engine.players.values()
    ],
    columns=["Name", "Level", "Games", "Where"],
)
st.sidebar.dataframe(
    roster_df.sort_values(["Games", "Name"]),
    hide_index=True,
    use_container_width=True,
)

names = {p.id: p.name for p in engine.players.values()}
if names:
    picked = st.sidebar.selectbox("Player", list(names), format_func=names.get)
    col1, col2 = st.sidebar.columns(2)
    if col1.button("⏸ Pause / resume", use_container_width=True):
        show(engine.toggle_pause(picked))
    if col2.button("🗑 Remove", use_container_width=True):
        show(engine.remove_player(picked))

confirm_reset = st.sidebar.checkbox("I really want to reset everything")
if st.sidebar.button("🔄 Reset stats and schedule", disabled=not confirm_reset):
    engine.reset()
    st.session_state.analysis = {}
    st.rerun()

# ──────────────────────────────────
# Main UI
# ──────────────────────────────────
st.title("🏸 Doubles Court Rotation")
st.caption(f"Available players: {engine.available_count()}")

if st.session_state.flash:
    st.warning(st.session_state.flash)
    st.session_state.flash = ""

# ----- courts -----
cols = st.columns(len(engine.courts))
for col, court in zip(cols, engine.courts):
    with col:
        lineup = engine.court_lineup(court.id)
        cls = "court-block" if court.is_busy else "court-block idle"
        if court.is_busy:
            body = (f"{seat_html(lineup[0])} &amp; {seat_html(lineup[1])}<br>vs<br>"
                    f"{seat_html(lineup[2])} &amp; {seat_html(lineup[3])}")
        else:
            body = '<span class="empty-seat">idle</span>'
        st.markdown(
            f'<div class="{cls}"><div class="court-line">{court.name}</div>{body}</div>',
            unsafe_allow_html=True,
        )
        if court.is_busy:
            b1, b2, b3 = st.columns(3)
            if b1.button("✅ Finish", key=f"finish_{court.id}", use_container_width=True):
                st.session_state.analysis.pop(court.id, None)
                show(engine.finish_match(court.id))
            if b2.button("✖ Clear", key=f"clear_{court.id}", use_container_width=True):
                st.session_state.analysis.pop(court.id, None)
                show(engine.clear_court(court.id))
            if court.current_match.is_full and b3.button(
                "🎙 Coach", key=f"coach_{court.id}", use_container_width=True
            ):
                with st.spinner("Asking the coach..."):
                    st.session_state.analysis[court.id] = get_match_analysis(lineup)
        elif st.button("▶ Next match", key=f"assign_{court.id}", use_container_width=True):
            show(engine.assign_next_match(court.id))
        if court.id in st.session_state.analysis:
            st.info(st.session_state.analysis[court.id])

# ----- queue -----
st.subheader("Up next")
for i, match in enumerate(engine.queue, start=1):
    lineup = engine.lineup(match)
    q1, q2 = st.columns([5, 1])
    q1.markdown(
        f'<div class="queue-line">{i}. {seat_html(lineup[0])} &amp; {seat_html(lineup[1])}'
        f" &nbsp;vs&nbsp; {seat_html(lineup[2])} &amp; {seat_html(lineup[3])}</div>",
        unsafe_allow_html=True,
    )
    if match.empty_slots and q2.button("✨ Auto-fill", key=f"fill_{match.id}"):
        show(engine.auto_fill_match(match.id))

# ----- manual placement -----
targets = [(COURT, c.id, c.name) for c in engine.courts]
targets += [(QUEUE, m.id, f"Queue {i}") for i, m in enumerate(engine.queue, start=1)]

with st.expander("Move / swap a player"):
    if names:
        origin = st.radio("From", ["roster", "seat"], horizontal=True, key="move_origin",
                          help="roster: only resting players can be queued; seat: swap seats")
        who = st.selectbox("Player", list(names), format_func=names.get, key="move_who")
        where = st.selectbox("Into", targets, format_func=lambda t: t[2], key="move_where")
        seat = st.selectbox("Seat", [1, 2, 3, 4], key="move_seat")
        if st.button("Place"):
            kind, container_id, _ = where
            if kind == COURT:
                show(engine.drop_player(who, container_id, seat - 1))
            else:
                show(engine.drop_into_queue(who, container_id, seat - 1,
                                            from_bench=origin == "roster"))

with st.expander("Substitute"):
    busy = [t for t in targets if engine.match_at(t[0], t[1]) is not None]
    if busy and names:
        where = st.selectbox("Match", busy, format_func=lambda t: t[2], key="sub_where")
        match = engine.match_at(where[0], where[1])
        outgoing = st.selectbox("Out", match.participants, format_func=names.get, key="sub_out")
        incoming = st.selectbox("In", list(names), format_func=names.get, key="sub_in")
        if outgoing and st.button("Substitute"):
            show(engine.substitute(where[0], where[1], outgoing, incoming))
