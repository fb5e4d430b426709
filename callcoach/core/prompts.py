"""
Interview Call Coach - Prompts and Messages.

Defines the report-generation templates sent to the text-generation
service, the in-band messages injected into a live call, and the
user-facing notices emitted by the session machine.
"""

# -----------------------------------------------------------------------------
# Feedback Report Template
# -----------------------------------------------------------------------------

FEEDBACK_PROMPT = """You are an expert interview coach analyzing a technical interview session. Please provide detailed feedback based on the following conversation transcript:

{transcript}

Please analyze this interview and provide feedback in the following JSON format:

{{
  "overallScore": [number 0-100],
  "communicationScore": [number 0-100],
  "technicalScore": [number 0-100],
  "problemSolvingScore": [number 0-100],
  "confidenceScore": [number 0-100],
  "strengths": [array of 3-5 specific strengths],
  "weaknesses": [array of 3-4 areas for improvement],
  "suggestions": [array of 4-5 actionable suggestions],
  "nextSteps": [array of 4-5 concrete next steps],
  "aiSummary": "[2-3 sentence summary of overall performance]",
  "personalizedPlan": [array of 5-6 weekly improvement goals]
}}

Focus on:
- Technical knowledge and problem-solving approach
- Communication clarity and structure
- Confidence and professionalism
- Areas for improvement with specific suggestions
- Actionable next steps for skill development

Respond with valid JSON only. Provide realistic scores and constructive feedback that would help the candidate improve."""


# -----------------------------------------------------------------------------
# Interview Evaluation Template
# -----------------------------------------------------------------------------

EVALUATION_PROMPT = """You are a senior hiring manager evaluating a recorded technical interview.

## Interview Transcript
{transcript}

## Evaluation Criteria
Rate each aspect from 0 to 10 and justify it in one sentence:
1. **technicalKnowledge**: Correctness and depth of technical content
2. **problemSolving**: Structure of the approach, handling of edge cases
3. **communication**: Clarity and organization of explanations
4. **confidence**: Composure and decisiveness

## Response Format
Respond with valid JSON only:
{{
    "overallRating": <0-10>,
    "recommendation": "<Strong Hire | Hire | No Hire | Strong No Hire>",
    "confidenceLevel": <1-10, how sure you are of this evaluation>,
    "aspects": {{
        "technicalKnowledge": {{"score": <0-10>, "feedback": "<one sentence>"}},
        "problemSolving": {{"score": <0-10>, "feedback": "<one sentence>"}},
        "communication": {{"score": <0-10>, "feedback": "<one sentence>"}},
        "confidence": {{"score": <0-10>, "feedback": "<one sentence>"}}
    }},
    "strengths": ["<strength>", ...],
    "areasForImprovement": ["<area>", ...],
    "detailedFeedback": "<one paragraph>"
}}"""


# -----------------------------------------------------------------------------
# In-Band Call Messages
# -----------------------------------------------------------------------------

SOLUTION_SYSTEM_MESSAGE = (
    "The candidate has submitted a written solution to the current coding "
    "question through the text channel. Acknowledge it and give feedback on "
    "the approach during the interview."
)

SOLUTION_USER_MESSAGE = 'USER PROVIDED DSA SOLUTION VIA TEXT: "{solution}"'

TEXT_SOLUTION_PREFIX = "[TEXT SOLUTION]: "

RESUME_SYSTEM_MESSAGE = (
    "Here is the user's resume content. Use this to personalize interview "
    "questions and context:\n\n{resume}"
)

RESUME_USER_MESSAGE = "I have uploaded my resume. Please use it to tailor the interview."


# -----------------------------------------------------------------------------
# User-Facing Notices
# -----------------------------------------------------------------------------

NOTICES = {
    "start_failed": "Failed to start call. Please try again.",
    "saving": "Saving call data...",
    "saved": "Call data saved successfully!",
    "save_failed": "Failed to save call data. Please try again.",
    "no_call_id": "No call ID available for saving",
    "solution_submitted": "Solution submitted! The interviewer will analyze your approach.",
    "resume_sent": "Resume sent to interviewer!",
    "resume_attached": "Resume attached! It will be used when the interview starts.",
}
