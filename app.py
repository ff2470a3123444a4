import logging
import time

import streamlit as st

from virus_engine import (
    RULES,
    create_initial_state,
    format_number,
    get_ui_snapshot,
    purchase,
    run_ticks,
    simulate_tick,
)

APP_TITLE = "Viral Idle — Streamlit UI"
TICK_SECONDS = 0.1  # 10 ticks per second

logging.basicConfig(level=logging.INFO)


def fmt(x):
    if x is None:
        return "-"
    try:
        return format_number(float(x))
    except (TypeError, ValueError, OverflowError):
        return str(x)


# -----------------------------
# Session / actions
# -----------------------------

def ensure_state():
    st.session_state.setdefault('game', None)
    st.session_state.setdefault('auto_run', False)
    st.session_state.setdefault('last_error', None)


def do_new_game(total_humans: float | None = None):
    st.session_state['game'] = create_initial_state(total_humans=total_humans)
    st.session_state['last_error'] = None


def do_tick(n: int = 1):
    st.session_state['game'] = run_ticks(st.session_state['game'], n)


def do_purchase(action_key: str):
    try:
        st.session_state['game'] = purchase(st.session_state['game'], action_key)
        st.session_state['last_error'] = None
    except (KeyError, ValueError) as e:
        st.session_state['last_error'] = str(e)


# -----------------------------
# Renderers
# -----------------------------

def render_hud(snapshot: dict):
    hud = snapshot.get('hud', {}) or {}

    st.title(APP_TITLE)

    c1, c2, c3, c4, c5, c6 = st.columns(6)
    c1.metric('Day', hud.get('day', '-'))
    c2.metric('Viruses', fmt(hud.get('current_viruses')))
    c3.metric('Total viruses', fmt(hud.get('total_viruses')))
    c4.metric('Healthy', fmt(hud.get('healthy_humans')))
    c5.metric('Infected', fmt(hud.get('infected_humans')))
    c6.metric('Dead', fmt(hud.get('dead_humans')))

    st.progress(max(0.0, min(1.0, float(hud.get('day_progress') or 0.0))))

    levels = hud.get('levels') or {}
    st.caption(" | ".join(f"{k}: {v}" for k, v in levels.items())
               + f" | contagious: {fmt(hud.get('contagious_humans'))}")


def render_actions(snapshot: dict):
    st.subheader('Actions')
    shown = [a for a in (snapshot.get('actions') or []) if a.get('visible')]
    for a in shown:
        cols = st.columns([0.35, 0.65])
        label = f"{a['name']} ({fmt(a['cost'])})"
        if a.get('maxed'):
            label = f"{a['name']} (max)"
        with cols[0]:
            if st.button(label, key=f"buy_{a['key']}", use_container_width=True,
                         disabled=(not a.get('affordable')) or a.get('maxed')):
                do_purchase(a['key'])
                st.rerun()
        with cols[1]:
            st.caption(a.get('description', ''))


def render_cohorts(snapshot: dict):
    st.subheader('Infected by cohort')
    st.caption('Slot 0 = newest, last slot = next to activate')
    st.bar_chart(snapshot.get('infected') or [])


def render_history(snapshot: dict):
    st.subheader('Daily history')
    hist = snapshot.get('history') or []
    if not hist:
        st.caption('— no full day yet —')
        return
    st.line_chart({
        'healthy': [row['healthy'] for row in hist],
        'infected': [row['infected'] for row in hist],
        'dead': [row['dead'] for row in hist],
    })


# -----------------------------
# UI
# -----------------------------

ensure_state()

st.sidebar.header('Game control')

with st.sidebar.expander('New Game', expanded=st.session_state.get('game') is None):
    pop_str = st.text_input('Population (optional)', value='')
    if st.button('🆕 New Game', use_container_width=True):
        total = None
        if pop_str.strip():
            try:
                total = float(pop_str.strip())
            except ValueError:
                st.sidebar.error('Population must be a number.')
        do_new_game(total_humans=total)
        st.rerun()

if st.session_state.get('game') is None:
    st.info('Start a **New Game** from the sidebar.')
    st.stop()

with st.sidebar.expander('Time', expanded=True):
    if st.button('⏭️ Next tick', use_container_width=True):
        do_tick(1)
        st.rerun()
    if st.button('⏩ Next day', use_container_width=True):
        do_tick(int(RULES['ticks_per_day']))
        st.rerun()
    st.session_state['auto_run'] = st.checkbox('Auto-run', value=st.session_state['auto_run'])

if st.session_state.get('last_error'):
    st.error(st.session_state['last_error'])

snap = get_ui_snapshot(st.session_state['game'])

render_hud(snap)
left, right = st.columns([0.5, 0.5])
with left:
    render_actions(snap)
with right:
    render_cohorts(snap)
    render_history(snap)

if st.session_state['auto_run']:
    time.sleep(TICK_SECONDS)
    st.session_state['game'] = simulate_tick(st.session_state['game'])
    st.rerun()
