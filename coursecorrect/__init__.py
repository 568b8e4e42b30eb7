"""Edge handlers for the CourseCorrect course-modernization app."""

__version__ = "0.1.0"
