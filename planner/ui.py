SESSION_KEYS = ("inProgressWorkout", "workoutProgress", "personalBestsAchieved")

PAGE = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Workout Planner</title>
  <style>
    :root {
      --bg: #e8eef6;
      --panel: #ffffff;
      --line: #d7e0eb;
      --text: #172333;
      --muted: #6b7e93;
      --blue: #1e58d1;
      --good: #148248;
      --planned: #b35d2a;
      --bad: #c23b3b;
      --shadow: 0 12px 26px rgba(11, 25, 41, 0.08);
      --radius: 12px;
    }

    * { box-sizing: border-box; }
    body { margin: 0; font-family: system-ui, sans-serif; background: var(--bg); color: var(--text); }
    header { display: flex; align-items: center; justify-content: space-between; padding: 16px 24px; background: var(--panel); box-shadow: var(--shadow); }
    header h1 { margin: 0; font-size: 22px; }
    main { max-width: 1100px; margin: 24px auto; padding: 0 16px; }
    button { border: 1px solid var(--line); background: var(--panel); color: var(--text); border-radius: 8px; padding: 6px 12px; cursor: pointer; }
    button.primary { background: var(--blue); border-color: var(--blue); color: #fff; }
    button.danger { color: var(--bad); }
    button:disabled { opacity: 0.5; cursor: default; }
    input, select { border: 1px solid var(--line); border-radius: 8px; padding: 6px 8px; }
    input[type=number] { width: 72px; }
    .message { display: none; margin-bottom: 16px; padding: 10px 14px; border-radius: var(--radius); background: #fff4e5; border: 1px solid #f3c58f; justify-content: space-between; }
    .message.show { display: flex; }
    .week-nav { display: flex; gap: 8px; align-items: center; margin-bottom: 12px; }
    .week { display: grid; grid-template-columns: repeat(7, 1fr); gap: 10px; }
    .day { background: var(--panel); border-radius: var(--radius); box-shadow: var(--shadow); padding: 12px; min-height: 180px; display: flex; flex-direction: column; gap: 6px; }
    .day.today { outline: 2px solid var(--blue); }
    .day h3 { margin: 0; font-size: 14px; }
    .day ul { margin: 0; padding-left: 16px; font-size: 13px; flex: 1; }
    .day .actions { display: flex; flex-wrap: wrap; gap: 4px; }
    .badge { font-size: 11px; padding: 2px 8px; border-radius: 999px; background: var(--line); align-self: flex-start; }
    .badge.scheduled { background: #fde7d6; color: var(--planned); }
    .badge.in_progress { background: #dbe7ff; color: var(--blue); }
    .badge.completed { background: #d9f2e4; color: var(--good); }
    .panel { background: var(--panel); border-radius: var(--radius); box-shadow: var(--shadow); padding: 20px; }
    .row { display: flex; gap: 8px; align-items: center; padding: 8px 0; border-bottom: 1px solid var(--line); }
    .row .name { flex: 1; }
    .row.done { opacity: 0.6; }
    .modal-bg { position: fixed; inset: 0; background: rgba(0, 0, 0, 0.45); display: none; align-items: center; justify-content: center; }
    .modal-bg.show { display: flex; }
    .modal { background: var(--panel); border-radius: var(--radius); width: min(640px, 94vw); max-height: 90vh; overflow-y: auto; padding: 20px; }
    .muted { color: var(--muted); font-size: 13px; }
    .pb { color: var(--good); font-weight: 600; }
  </style>
</head>
<body>
  <header>
    <h1>Workout Planner</h1>
    <a href="#/">Week</a>
  </header>
  <main>
    <div id="message" class="message"><span id="message-text"></span><button onclick="hideMessage()">&times;</button></div>
    <section id="view"></section>
  </main>

  <div id="modal-bg" class="modal-bg"><div id="modal" class="modal"></div></div>

  <script>
    const WorkoutSession = {
      MARKER: "inProgressWorkout",
      PROGRESS: "workoutProgress",
      BESTS: "personalBestsAchieved",

      read(key, fallback) {
        const raw = localStorage.getItem(key);
        if (!raw) return fallback;
        try { return JSON.parse(raw); } catch (e) { return fallback; }
      },
      write(key, value) { localStorage.setItem(key, JSON.stringify(value)); },

      marker() { return this.read(this.MARKER, null); },
      start(date) {
        const current = this.marker();
        if (!current || current.date !== date) {
          localStorage.removeItem(this.PROGRESS);
          this.write(this.MARKER, { date, startedAt: new Date().toISOString() });
        }
      },
      progress() { return this.read(this.PROGRESS, null); },
      saveProgress(rows) { this.write(this.PROGRESS, rows); },
      finish(bests) {
        localStorage.removeItem(this.PROGRESS);
        localStorage.removeItem(this.MARKER);
        this.write(this.BESTS, bests || []);
      },
      takeBests() {
        const bests = this.read(this.BESTS, []);
        localStorage.removeItem(this.BESTS);
        return bests;
      },
    };

    const state = { weekStart: mondayOf(new Date()), templates: [], days: {}, workouts: {} };

    function iso(d) {
      const local = new Date(d.getTime() - d.getTimezoneOffset() * 60000);
      return local.toISOString().slice(0, 10);
    }
    function mondayOf(d) {
      const copy = new Date(d.getFullYear(), d.getMonth(), d.getDate());
      const offset = (copy.getDay() + 6) % 7;
      copy.setDate(copy.getDate() - offset);
      return copy;
    }
    function addDays(d, n) { const c = new Date(d); c.setDate(c.getDate() + n); return c; }
    function esc(s) { return String(s ?? "").replace(/[&<>"']/g, c => ({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;"}[c])); }

    function showMessage(text) {
      document.getElementById("message-text").textContent = text;
      document.getElementById("message").classList.add("show");
    }
    function hideMessage() { document.getElementById("message").classList.remove("show"); }

    async function api(path, body) {
      const opts = body === undefined ? {} : { method: "POST", headers: { "Content-Type": "application/json" }, body: JSON.stringify(body) };
      const resp = await fetch(path, opts);
      const data = await resp.json().catch(() => ({}));
      if (!resp.ok) throw new Error(data.error || `Request failed (${resp.status})`);
      return data;
    }

    function openModal(html) {
      document.getElementById("modal").innerHTML = html;
      document.getElementById("modal-bg").classList.add("show");
    }
    function closeModal() { document.getElementById("modal-bg").classList.remove("show"); }

    async function loadWeek() {
      const start = iso(state.weekStart), end = iso(addDays(state.weekStart, 6));
      const [days, workouts] = await Promise.all([
        api(`/days?startDate=${start}&endDate=${end}`),
        api(`/workouts?startDate=${start}&endDate=${end}`),
      ]);
      state.days = Object.fromEntries(days.map(d => [d.date, d]));
      state.workouts = {};
      for (const w of workouts) (state.workouts[w.date] = state.workouts[w.date] || []).push(w);
    }

    async function renderWeek() {
      const view = document.getElementById("view");
      try {
        if (!state.templates.length) state.templates = await api("/templates");
        await loadWeek();
      } catch (e) {
        showMessage(e.message);
      }
      const today = iso(new Date());
      const cards = [];
      for (let i = 0; i < 7; i++) {
        const date = iso(addDays(state.weekStart, i));
        const info = state.days[date] || { status: "unscheduled" };
        const entries = state.workouts[date] || [];
        const title = entries.length ? esc(entries[0].name.split(" - ")[0]) : "Rest";
        const actions = [];
        if (info.status === "completed") {
          actions.push(`<button onclick="viewCompleted('${date}')">View</button>`);
        } else {
          actions.push(`<button onclick="editDay('${date}')">${entries.length ? "Edit" : "Plan"}</button>`);
          if (entries.length) actions.push(`<button class="primary" onclick="location.hash='#/workout/${date}'">Start</button>`);
        }
        if (entries.length) actions.push(`<button onclick="moveDay('${date}')">Move</button>`);
        cards.push(`
          <div class="day ${date === today ? "today" : ""}">
            <h3>${new Date(date + "T00:00").toLocaleDateString(undefined, { weekday: "short", month: "short", day: "numeric" })}</h3>
            <span class="badge ${info.status}">${info.status.replace("_", " ")}</span>
            <strong>${title}</strong>
            <ul>${entries.map(e => `<li>${esc(e.exerciseName)} ${e.sets}&times;${e.reps}</li>`).join("")}</ul>
            <div class="actions">${actions.join("")}</div>
          </div>`);
      }
      const marker = WorkoutSession.marker();
      view.innerHTML = `
        ${marker ? `<div class="panel" style="margin-bottom:12px">Workout in progress for ${esc(marker.date)} <button class="primary" onclick="location.hash='#/workout/${esc(marker.date)}'">Resume</button></div>` : ""}
        <div class="week-nav">
          <button onclick="shiftWeek(-7)">&larr;</button>
          <strong>Week of ${iso(state.weekStart)}</strong>
          <button onclick="shiftWeek(7)">&rarr;</button>
          <button onclick="state.weekStart = mondayOf(new Date()); renderWeek()">Today</button>
        </div>
        <div class="week">${cards.join("")}</div>`;
    }

    function shiftWeek(n) { state.weekStart = addDays(state.weekStart, n); renderWeek(); }

    let editor = null;

    async function editDay(date) {
      const existing = state.workouts[date] || [];
      const templateName = existing.length ? existing[0].name.split(" - ")[0] : "";
      const template = state.templates.find(t => t.name === templateName) || null;
      editor = {
        date,
        hadEntries: existing.length > 0,
        templateId: template ? template.id : "",
        exercises: existing.map(e => ({ exerciseId: e.exerciseId, exerciseName: e.exerciseName, defaultSets: e.sets, defaultReps: e.reps })),
        options: [],
      };
      if (editor.templateId) await loadExerciseOptions();
      renderEditor();
    }

    async function selectTemplate(id) {
      editor.templateId = id;
      const template = state.templates.find(t => t.id === id);
      editor.exercises = template ? template.exercises.map(e => ({ ...e })) : [];
      await loadExerciseOptions();
      renderEditor();
    }

    async function loadExerciseOptions() {
      try {
        const { bodyGroupIds } = await api(`/templates/body-groups?templateId=${encodeURIComponent(editor.templateId)}`);
        editor.options = bodyGroupIds.length
          ? await api("/exercises/by-body-groups", { bodyGroupIds })
          : await api("/exercises");
      } catch (e) {
        editor.options = [];
        showMessage(e.message);
      }
    }

    function renderEditor() {
      const rows = editor.exercises.map((e, i) => `
        <div class="row">
          <span class="name">${esc(e.exerciseName)}</span>
          <input type="number" min="0" value="${e.defaultSets}" onchange="editor.exercises[${i}].defaultSets = Number(this.value)" /> sets
          <input type="number" min="0" value="${e.defaultReps}" onchange="editor.exercises[${i}].defaultReps = Number(this.value)" /> reps
          <button class="danger" onclick="editor.exercises.splice(${i}, 1); renderEditor()">Remove</button>
        </div>`).join("");
      const options = editor.options.map(o => `<option value="${esc(o.id)}">${esc(o.name)}${o.bodyGroupName ? " (" + esc(o.bodyGroupName) + ")" : ""}</option>`).join("");
      openModal(`
        <h2>${editor.hadEntries ? "Edit" : "Create"} Workout</h2>
        <p class="muted">${editor.date}</p>
        <select onchange="selectTemplate(this.value)">
          <option value="">Choose a template...</option>
          ${state.templates.map(t => `<option value="${esc(t.id)}" ${t.id === editor.templateId ? "selected" : ""}>${esc(t.name)}</option>`).join("")}
        </select>
        <div>${rows}</div>
        ${editor.templateId ? `<div class="row"><select id="add-exercise">${options}</select><button onclick="addExercise()">Add exercise</button></div>` : ""}
        <div class="row">
          <button class="primary" onclick="saveDay()" ${editor.templateId ? "" : "disabled"}>Save</button>
          ${editor.hadEntries ? `<button class="danger" onclick="clearDay()">Clear day</button>` : ""}
          <button onclick="closeModal()">Cancel</button>
        </div>`);
    }

    function addExercise() {
      const id = document.getElementById("add-exercise").value;
      const option = editor.options.find(o => o.id === id);
      if (!option) return;
      editor.exercises.push({ exerciseId: option.id, exerciseName: option.name, defaultSets: 3, defaultReps: 10 });
      renderEditor();
    }

    async function saveDay() {
      try {
        if (editor.hadEntries) await api("/workouts/clear", { date: editor.date });
        const data = await api("/workouts", { templateId: editor.templateId, date: editor.date, customExercises: editor.exercises });
        showMessage(data.message);
        closeModal();
        renderWeek();
      } catch (e) {
        showMessage(e.message);
      }
    }

    async function clearDay() {
      try {
        const data = await api("/workouts/clear", { date: editor.date });
        showMessage(data.message);
        closeModal();
        renderWeek();
      } catch (e) {
        showMessage(e.message);
      }
    }

    function moveDay(date) {
      openModal(`
        <h2>Move workout</h2>
        <p class="muted">From ${date}</p>
        <div class="row"><input type="date" id="move-to" value="${date}" /> <label><input type="checkbox" id="move-swap" /> Swap with that day</label></div>
        <div class="row"><button class="primary" onclick="submitMove('${date}')">Move</button><button onclick="closeModal()">Cancel</button></div>`);
    }

    async function submitMove(fromDate) {
      const toDate = document.getElementById("move-to").value;
      const isSwap = document.getElementById("move-swap").checked;
      try {
        const data = await api("/workouts/move", { fromDate, toDate, isSwap });
        showMessage(`${data.message} (${data.movedWorkouts} workouts)`);
        closeModal();
        renderWeek();
      } catch (e) {
        showMessage(e.message);
      }
    }

    async function viewCompleted(date) {
      try {
        const workouts = await api(`/workouts?startDate=${date}&endDate=${date}`);
        const bests = await api("/exercises/best", { exerciseIds: workouts.map(w => w.exerciseId).filter(Boolean) });
        const rows = workouts.map(w => {
          const best = bests[w.exerciseId] || 0;
          return `<div class="row"><span class="name">${esc(w.exerciseName)}</span>
            <span>${w.sets} sets &middot; ${w.reps} reps &middot; ${w.maxWeight} lbs</span>
            ${best > 0 ? `<span class="muted">PB ${best} lbs ${w.maxWeight === best ? '<span class="pb">&#9733;</span>' : ""}</span>` : ""}</div>`;
        }).join("");
        openModal(`<h2>Completed workout</h2><p class="muted">${date}</p>${rows}<div class="row"><button onclick="closeModal()">Close</button></div>`);
      } catch (e) {
        showMessage(e.message);
      }
    }

    let session = null;

    async function renderWorkout(date) {
      const view = document.getElementById("view");
      let workouts = [];
      try {
        workouts = await api(`/workouts?startDate=${date}&endDate=${date}`);
      } catch (e) {
        showMessage(e.message);
      }
      if (!workouts.length) {
        view.innerHTML = `<div class="panel">No exercises found for this date. <a href="#/">Back</a></div>`;
        return;
      }
      WorkoutSession.start(date);
      const initial = workouts.map(w => ({
        pageId: w.id, exerciseId: w.exerciseId, exerciseName: w.exerciseName,
        defaultSets: w.sets, defaultReps: w.reps, actualSets: null, actualReps: null, maxWeight: null, completed: false,
      }));
      const saved = WorkoutSession.progress();
      const known = new Set(initial.map(r => r.pageId));
      session = {
        date,
        name: workouts[0].name.split(" - ")[0] || "Workout",
        rows: Array.isArray(saved) && saved.length && saved.every(r => known.has(r.pageId)) ? saved : initial,
      };
      drawSession();
    }

    function drawSession() {
      const rows = session.rows.map(r => `
        <div class="row ${r.completed ? "done" : ""}">
          <span class="name">${esc(r.exerciseName)} <span class="muted">${r.defaultSets}&times;${r.defaultReps}</span></span>
          <input type="number" min="0" placeholder="sets" value="${r.actualSets ?? ""}" ${r.completed ? "disabled" : ""} onchange="updateRow('${r.pageId}', 'actualSets', this.value)" />
          <input type="number" min="0" placeholder="reps" value="${r.actualReps ?? ""}" ${r.completed ? "disabled" : ""} onchange="updateRow('${r.pageId}', 'actualReps', this.value)" />
          <input type="number" min="0" placeholder="lbs" value="${r.maxWeight ?? ""}" ${r.completed ? "disabled" : ""} onchange="updateRow('${r.pageId}', 'maxWeight', this.value)" />
          ${r.completed ? "&#10003;" : `<button onclick="completeRow('${r.pageId}')">Done</button>`}
        </div>`).join("");
      const allDone = session.rows.every(r => r.completed);
      document.getElementById("view").innerHTML = `
        <div class="panel">
          <h2>${esc(session.name)}</h2>
          <p class="muted">${session.date}</p>
          ${rows}
          <div class="row">
            <button class="primary" onclick="finishWorkout()" ${allDone ? "" : "disabled"}>Finish workout</button>
            <button onclick="WorkoutSession.saveProgress(session.rows); location.hash='#/'">Back</button>
          </div>
        </div>`;
    }

    function updateRow(pageId, field, value) {
      const row = session.rows.find(r => r.pageId === pageId);
      if (!row) return;
      row[field] = value === "" ? null : Number(value);
      WorkoutSession.saveProgress(session.rows);
    }

    function completeRow(pageId) {
      const row = session.rows.find(r => r.pageId === pageId);
      if (!row) return;
      if (row.actualSets === null || row.actualReps === null || row.maxWeight === null) {
        showMessage("Please fill in all fields before marking complete");
        return;
      }
      row.completed = true;
      session.rows = [...session.rows.filter(r => !r.completed), ...session.rows.filter(r => r.completed)];
      WorkoutSession.saveProgress(session.rows);
      hideMessage();
      drawSession();
    }

    async function finishWorkout() {
      if (!session.rows.every(r => r.completed)) {
        showMessage("Complete every exercise before finishing");
        return;
      }
      try {
        const data = await api("/workouts/finish", {
          date: session.date,
          exercises: session.rows.map(r => ({
            pageId: r.pageId, exerciseId: r.exerciseId, exerciseName: r.exerciseName,
            totalSets: r.actualSets, totalReps: r.actualReps, maxWeight: r.maxWeight,
          })),
        });
        WorkoutSession.finish(data.personalBests);
        if (!data.success || !data.dailyCompleted) showMessage(data.message);
        location.hash = "#/complete";
      } catch (e) {
        showMessage(e.message);
      }
    }

    function renderComplete() {
      const bests = WorkoutSession.takeBests();
      const list = bests.length
        ? `<h3>New personal bests</h3><ul>${bests.map(b => `<li class="pb">${esc(b.exerciseName)}: ${b.weight} lbs</li>`).join("")}</ul>`
        : `<p class="muted">No new personal bests this time.</p>`;
      document.getElementById("view").innerHTML = `<div class="panel"><h2>Workout complete!</h2>${list}<a href="#/">Back to the week</a></div>`;
    }

    function route() {
      const hash = location.hash || "#/";
      const workout = hash.match(/^#\/workout\/(\d{4}-\d{2}-\d{2})$/);
      if (workout) return renderWorkout(workout[1]);
      if (hash === "#/complete") return renderComplete();
      return renderWeek();
    }

    document.getElementById("modal-bg").addEventListener("click", e => { if (e.target.id === "modal-bg") closeModal(); });
    window.addEventListener("hashchange", route);
    route();
  </script>
</body>
</html>
"""


def render_page() -> str:
    return PAGE
