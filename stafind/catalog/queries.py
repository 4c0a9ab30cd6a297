"""SQL queries for the skill catalog."""

# One row per (skill, category) membership; skills without a category still
# come back once with NULL category columns.
GET_SKILLS_WITH_CATEGORIES = """
    SELECT
        s.id AS skill_id,
        s.name AS skill_name,
        c.id AS category_id,
        c.name AS category_name
    FROM skills s
    LEFT JOIN skill_categories sc ON sc.skill_id = s.id
    LEFT JOIN categories c ON c.id = sc.category_id
    ORDER BY s.name, c.name
"""

GET_ALL_CATEGORIES = """
    SELECT id, name
    FROM categories
    ORDER BY name
"""
