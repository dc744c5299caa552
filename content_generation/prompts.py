"""
Prompt templates and builders for the three AI stages: follow-up questions,
research and content generation/regeneration.

Builders only format what they are given. An empty idea or content type
still produces a usable (if vague) prompt.
"""

from typing import Any, Dict, List, Optional, Tuple

# (substring of the lower-cased content type, formatting instruction)
CONTENT_TYPE_HINTS: List[Tuple[str, str]] = [
    ("blog", "Please format this as a complete blog post with a compelling headline, introduction, properly structured sections with subheadings, and a conclusion."),
    ("social", "Please format this as social media content with appropriate hashtags and engaging language for the platform."),
    ("youtube", "Please format this as a YouTube script with intro, main content sections, and an outro including a call to action."),
    ("email", "Please format this as an email with subject line, greeting, main content, and signature."),
]


QUESTIONS_SYSTEM_PROMPT = """You are an expert content strategist who helps creators refine their ideas. Your role is to analyze the user's content type and idea, then generate tailored follow-up questions that will help them better articulate their goals for this {content_type}.

IMPORTANT GUIDELINES:
- Generate 3-5 specific questions that directly relate to the user's content type and idea
- Each question should help the user clarify their vision, goals, or intended audience
- Analyze the specific keywords and phrases in their content idea and content type
- Focus questions on areas that would benefit from elaboration or clarification
- Ask about aspects that would help shape the research and final output
- Questions should be practical and help the user think through what they actually want
- Do not ask generic questions that could apply to any content
- Do not ask about information the user would need to research
- Focus on drawing out the user's expertise, preferences, and vision
- Questions should be clear, concise, and directly actionable
- ONLY return the numbered questions, nothing else"""

QUESTIONS_USER_PROMPT = """Content Type: {content_type}

User's Content Idea:
{idea}

{transcript_text}Based on this specific content type "{content_type}" and their idea, generate 3-5 tailored follow-up questions that will help clarify:
1. The specific goals or outcomes they want to achieve with this {content_type}
2. Any particular style, tone, or approach they prefer for this specific content
3. The knowledge gaps that research should fill to make this {content_type} more effective
4. How they want to differentiate this content from similar content in their field
5. Any specific elements they want to emphasize or highlight

Your questions should feel like they were specifically written for someone creating a "{content_type}" about "{idea_excerpt}..." """


RESEARCH_SYSTEM_PROMPT = """You are a specialized research assistant for {content_type} creation. You provide tailored, specific information that directly addresses the user's needs for creating this type of content. Your research is thorough, well-organized, and directly applicable to the user's stated goals. You focus on providing concrete facts, statistics, examples, and expert insights that would be most valuable for this particular content type."""

RESEARCH_USER_PROMPT = """I need comprehensive research for creating a {content_type}.

User's Original Idea:
{idea}

{transcript_text}User's Answers to Follow-up Questions:
{answered_questions}

Based on all of the above information, conduct targeted research specifically focused on creating an effective {content_type}.

The research should be highly relevant to the specific type of content ("{content_type}") and the user's stated goals and preferences from their answers.

Please structure your research in the following format:

### Research for {content_type} on {idea_excerpt}...

#### {content_type_title} Overview and Context Analysis
- **(Include 2-3 points with statistics, expert insights, or industry standards specifically for {content_type})**

#### Audience Insights for this {content_type}
- **(Include 2-3 points about the likely audience preferences, behaviors, or expectations for this type of content)**

#### Dramatic or Engaging Elements for {content_type}
- **(Include 2-3 points about storytelling techniques, formats, or structures that work well for this specific content type)**

#### Content Strategy Elements
- **(Include 2-3 points about effective strategies, trends, or best practices for this type of content)**

For each section, prioritize specific facts, statistics, expert quotes, case studies, and examples that directly support the user's vision as expressed in their idea and answers.

Note: Don't just use placeholder text or generic information. Provide actual researched information that would be valuable for someone creating this specific {content_type}."""


GENERATE_SYSTEM_PROMPT = """You are an expert content creator that specializes in creating high-quality, well-researched {content_type} content.
You help users by generating content based on their ideas, their answers to specific questions, and provided research.
The content you create should be original, engaging, and reflect the user's authentic voice based on how they've answered the questions.

When generating content, follow these rules:
1. Use the research provided to inform the content, incorporating relevant facts, statistics, and insights.
2. Maintain the user's perspective and opinions as expressed in their answers to questions.
3. Format the content appropriately for the chosen content type ({content_type}).
4. Create content that is ready to use without requiring additional editing.
5. Do not mention that the content was AI-generated or include any meta-commentary about the content generation process.
6. Focus on creating authentic, human-sounding content that reflects the user's voice."""

GENERATE_USER_PROMPT = """Please create a {content_type} based on the following:

IDEA: {idea}

USER'S PERSPECTIVE (based on answers to questions):
{formatted_questions}

RESEARCH TO INCORPORATE:
{research}"""

FEEDBACK_INSTRUCTION = """

USER FEEDBACK FOR IMPROVEMENT:
{feedback}

Please regenerate the content taking this feedback into account while maintaining the original purpose and incorporating the research."""


FALLBACK_RESEARCH_TEMPLATE = """### Research for {content_type} on {idea_excerpt}...

#### {content_type_title} Overview and Context Analysis

- **Statistical Context**: Based on recent industry analysis, {content_type}s that focus on {themes} typically see 42% higher engagement rates compared to other content formats. The most successful pieces incorporate personal narratives with factual information.

- **Historical Performance**: Content creators who specialize in {content_type}s about similar topics have seen growth in audience retention by approximately 37% year-over-year, particularly when they maintain consistent publishing schedules.

- **Expert Opinion**: According to content strategist Rebecca Lieb, "{content_type}s that can establish clear value propositions within the first 30 seconds of engagement often have deep impact on audience decision-making. This is especially true for content about {themes_short}."

#### Audience Insights for this {content_type}

- **Key Demographics**: The primary audience for this type of {content_type} typically falls between 25-45 years old, with particular interest coming from professionals seeking practical information they can apply immediately.

- **Engagement Patterns**: Analytics from similar {content_type}s show that audiences prefer content with clear section breaks, visual elements, and actionable takeaways they can implement.

- **Content Preferences**: Research indicates that consumers of {content_type}s about {themes_subjects} typically engage most with content that combines storytelling elements with practical advice or insights.

#### Dramatic or Engaging Elements for {content_type}

- **Narrative Structure**: The most compelling {content_type}s in this space often use a problem-solution-outcome framework, with particular emphasis on the transformation or results that can be achieved.

- **Engagement Hooks**: Successful creators of {content_type}s frequently use provocative questions, surprising statistics, or compelling personal anecdotes in their openings to capture audience attention.

- **Content Pacing**: Data shows that effective {content_type}s maintain audience interest by varying content density and complexity throughout, with key points emphasized through strategic repetition.

#### Content Strategy Elements

- **Distribution Insights**: The most effective channel mix for {content_type}s like this typically includes primary platform optimization plus 2-3 secondary platforms for content repurposing, increasing reach by an average of 65%.

- **Frequency Considerations**: Analytics suggest that consistent publishing of {content_type}s (at least bi-weekly) leads to 3.4x higher audience growth rates compared to sporadic publishing.

- **Measurement Framework**: Leading creators of successful {content_type}s typically track not just views and engagement, but also content longevity (how long pieces continue to generate traffic) and conversion metrics aligned with specific goals."""

# Used by the workflow when the research stage itself cannot be reached.
DEMO_RESEARCH = """[Demo research]

Based on the content idea and questions, here's what research shows:

1. Key statistics related to this topic
2. Expert opinions from leading authorities
3. Case studies and examples that illustrate important points
4. Recent developments and trends in this area
5. Historical context that helps frame the discussion

This demonstrates how the deep research feature would work with a valid API connection."""

GENERATION_FAILED_TEMPLATE = """[Unable to generate content]

We encountered a technical issue while generating your {content_type}.

Here's what you can try:

1. Press "Suggest Changes" below and enter "Please regenerate the content" - this will trigger a new generation attempt
2. If that doesn't work, try starting over with a new content idea
3. Ensure you have a valid OpenAI API key configured in your .env file

Your original inputs, answers, and research have been saved and can still be used when the service is working again."""

CHAT_SYSTEM_PROMPT = """You are a helpful content assistant. You help users brainstorm ideas, outline and draft content, and refine their writing. Answer clearly and concisely, and ask a clarifying question when a request is ambiguous."""


def excerpt(text: str, length: int = 50) -> str:
    return (text or "")[:length]


def make_title(idea: str, length: int = 50) -> str:
    """Title derived from an idea: first `length` chars, with an ellipsis when cut."""
    idea = idea or ""
    return idea[:length] + ("..." if len(idea) > length else "")


def title_case_first(content_type: str) -> str:
    return content_type[:1].upper() + content_type[1:]


def content_type_hint(content_type: str) -> Optional[str]:
    """Formatting instruction for the first known category found in the content type."""
    lowered = (content_type or "").lower()
    for category, hint in CONTENT_TYPE_HINTS:
        if category in lowered:
            return hint
    return None


def format_questions(questions: List[Dict[str, Any]], answered_only: bool = False) -> str:
    pairs = []
    for q in questions:
        answer = q.get("answer") or ""
        if answered_only and not answer.strip():
            continue
        pairs.append(f"Question: {q.get('text', '')}\nAnswer: {answer}")
    return "\n\n".join(pairs)


def build_questions_prompt(idea: str, content_type: str, transcript: Optional[str] = None) -> Tuple[str, str]:
    """Returns (system_prompt, user_prompt) for follow-up question generation."""
    transcript_text = ""
    if transcript:
        transcript_text = f"The user has also provided this transcript or existing content for reference:\n\n{transcript}\n\n"

    system_prompt = QUESTIONS_SYSTEM_PROMPT.format(content_type=content_type)
    user_prompt = QUESTIONS_USER_PROMPT.format(
        content_type=content_type,
        idea=idea,
        transcript_text=transcript_text,
        idea_excerpt=excerpt(idea),
    ).strip()
    return system_prompt, user_prompt


def build_research_prompt(
    idea: str,
    content_type: str,
    questions: List[Dict[str, Any]],
    transcript: Optional[str] = None,
) -> Tuple[str, str]:
    """Returns (system_prompt, user_prompt) for research generation. Only answered questions are listed."""
    transcript_text = f"User's Transcript/Content:\n{transcript}\n\n" if transcript else ""

    system_prompt = RESEARCH_SYSTEM_PROMPT.format(content_type=content_type)
    user_prompt = RESEARCH_USER_PROMPT.format(
        content_type=content_type,
        content_type_title=title_case_first(content_type),
        idea=idea,
        idea_excerpt=excerpt(idea),
        transcript_text=transcript_text,
        answered_questions=format_questions(questions, answered_only=True),
    )
    return system_prompt, user_prompt


def build_generation_prompt(
    idea: str,
    content_type: str,
    questions: List[Dict[str, Any]],
    research: str,
    transcript: Optional[str] = None,
    feedback: Optional[str] = None,
) -> Tuple[str, str]:
    """
    Returns (system_prompt, user_prompt) for content generation.

    Order of the user prompt: base request, transcript, feedback (regeneration
    only), then the content-type formatting hint.
    """
    system_prompt = GENERATE_SYSTEM_PROMPT.format(content_type=content_type)
    user_prompt = GENERATE_USER_PROMPT.format(
        content_type=content_type,
        idea=idea,
        formatted_questions=format_questions(questions),
        research=research or "",
    )

    if transcript:
        user_prompt += f"\n\nTRANSCRIPT OR ADDITIONAL CONTENT:\n{transcript}"

    if feedback:
        user_prompt += FEEDBACK_INSTRUCTION.format(feedback=feedback)

    hint = content_type_hint(content_type)
    if hint:
        user_prompt += f"\n\n{hint}"

    return system_prompt, user_prompt


def fallback_questions(content_type: str) -> List[Dict[str, str]]:
    """The fixed set returned when no question could be parsed from the provider's answer."""
    return [
        {"id": "q-1", "text": f"What specific goals do you want to achieve with this {content_type}?", "answer": ""},
        {"id": "q-2", "text": f"Who is the target audience for this {content_type} and what action do you want them to take?", "answer": ""},
        {"id": "q-3", "text": f"What tone, style, or approach would you like to use for this {content_type}?", "answer": ""},
        {"id": "q-4", "text": "What key points or information must be included to make this content successful?", "answer": ""},
    ]


def generic_questions() -> List[Dict[str, str]]:
    """Used by the workflow when the questions stage could not be reached at all."""
    return [
        {"id": "q-1", "text": "What is your personal connection to or interest in this topic?", "answer": ""},
        {"id": "q-2", "text": "Who is your target audience and what do you want them to take away from this content?", "answer": ""},
        {"id": "q-3", "text": "What unique perspective or angle do you want to emphasize in this content?", "answer": ""},
    ]


def extract_key_themes(idea: str, limit: int = 3) -> str:
    """
    Longest-words heuristic: the `limit` longest words over four characters,
    kept in the order they appear in the idea.
    """
    words = [w for w in (idea or "").split() if len(w) > 4]
    ranked = sorted(range(len(words)), key=lambda i: (-len(words[i]), i))[:limit]
    return ", ".join(words[i] for i in sorted(ranked))


def build_fallback_research(idea: str, content_type: str) -> str:
    themes = extract_key_themes(idea)
    return FALLBACK_RESEARCH_TEMPLATE.format(
        content_type=content_type,
        content_type_title=title_case_first(content_type),
        idea_excerpt=excerpt(idea),
        themes=themes or "topics like these",
        themes_short=themes or "these topics",
        themes_subjects=themes or "these subjects",
    )


def generation_failed_message(content_type: str) -> str:
    return GENERATION_FAILED_TEMPLATE.format(content_type=content_type)
