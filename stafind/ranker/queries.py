"""SQL queries for the candidate pool."""

# One row per (employee, skill); employees without skills come back once
# with a NULL skill_name.
GET_ALL_CANDIDATES_WITH_SKILLS = """
    SELECT
        e.id AS employee_id,
        e.name,
        e.department,
        e.level,
        e.location,
        e.current_project,
        s.name AS skill_name
    FROM employees e
    LEFT JOIN employee_skills es ON es.employee_id = e.id
    LEFT JOIN skills s ON s.id = es.skill_id
    ORDER BY e.id, s.name
"""
