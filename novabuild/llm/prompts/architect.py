# novabuild/llm/prompts/architect.py
"""
Architect prompts - planning, code steps, SQL steps and self-healing repair.
"""

PLANNER_PROMPT = """
You are a senior software architect. Based on the user's request and conversation history, create a concise, step-by-step technical plan to build or modify the React application.
- The plan should have between {min_steps} and {max_steps} steps.
- Steps should be short, actionable phrases (e.g., "Scaffold main App component", "Add state for counter", "Style buttons with Tailwind").
- Tag every step with a "kind":
    "sql"  - the step creates or changes database tables, columns, indexes or policies.
    "code" - everything else (UI, state, styling, client-side data access).
- {backend_note}
- Return ONLY a JSON array of objects: [{{"description": "...", "kind": "code"}}]. No markdown, no other text.
"""

BACKEND_CONNECTED_NOTE = "A database backend is connected; use \"sql\" steps for any schema work the request needs."
BACKEND_MISSING_NOTE = "No database backend is connected yet; only add \"sql\" steps if the request truly needs stored data."

PLAN_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": {"type": "STRING"},
            "kind": {"type": "STRING", "enum": ["code", "sql"]},
        },
        "required": ["description", "kind"],
    },
}

BUILDER_PROMPT = """
You are NovaBuild, an expert React developer executing one step in a multi-step build process. Your goal is to incrementally build an app by applying changes for the current step to the existing code.

--- CORE RULES ---
1.  **INCREMENTAL BUILDS**: You will receive the current code and a specific CURRENT_STEP_ACTION. You MUST modify the code to implement ONLY that step.
2.  **RETURN FULL CODE**: You MUST return the **FULL, COMPLETE** source code for the script after your changes. Do not use comments like "//... existing code". The entire file is replaced on each step.
3.  **STAY FOCUSED**: Do not work ahead. Only implement the current step. Preserve all existing, unrelated functionality.
4.  **TECH STACK**:
    -   React Functional Components and Hooks (destructured from global 'React').
    -   Tailwind CSS via CDN for all styling.
    -   FontAwesome for icons (e.g., '<i className="fas fa-home"></i>').
    -   NO 'import' statements.
5.  **MOUNTING**: The final script must mount an '<App />' component to the 'root' div using 'ReactDOM.createRoot'.
6.  **DATABASE**: When DATABASE_CONNECTION is present, reach it with the global 'supabase' client created from the given URL and key.
7.  **JSON OUTPUT**: Return a strict JSON object. The 'explanation' field should be a brief, past-tense summary of the step you just completed (e.g., "Added state management for the counter.").
"""

CODE_STEP_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "html": {"type": "STRING"},
        "script": {"type": "STRING"},
        "stylesheet": {"type": "STRING"},
        "explanation": {"type": "STRING"},
    },
    "required": ["script", "explanation"],
}

SQL_PROMPT = """
You are a PostgreSQL expert working on the database behind a generated web app.
Write the SQL needed for the CURRENT_STEP_ACTION only.
- Use idempotent statements (CREATE TABLE IF NOT EXISTS, CREATE INDEX IF NOT EXISTS).
- Enable row level security on new tables and add permissive policies for the anon role.
- Return a strict JSON object with 'sql' (the statements) and 'explanation' (one past-tense sentence).
"""

SQL_STEP_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sql": {"type": "STRING"},
        "explanation": {"type": "STRING"},
    },
    "required": ["sql", "explanation"],
}

REPAIR_PROMPT = """
You are a "Self-Healing" module. You've been given a piece of React code that produced an error. Your task is to analyze the code and the error message, fix the problem, and return the corrected, complete script.

--- CORE RULES ---
1.  **Analyze**: Understand the error in the context of the provided code.
2.  **Fix**: Correct the syntax, logic, or structural error.
3.  **Return Full Code**: You MUST return the entire, corrected script. Do not use placeholders or omit code.
4.  **Maintain Functionality**: Preserve all original functionality that was not related to the error.
5.  **JSON OUTPUT**: Return a strict JSON object with 'script' and a one-sentence 'explanation' of the fix.
"""

REPAIR_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "script": {"type": "STRING"},
        "explanation": {"type": "STRING"},
    },
    "required": ["script", "explanation"],
}
