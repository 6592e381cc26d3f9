"""
Prompt templates for LLM-based nodes.

All prompt constants used by the enrichment and linking pipeline are
centralized here for easier maintenance and iteration.
"""

# =============================================================================
# MEDIA SEARCH TERM PROMPTS
# =============================================================================

MEDIA_TERMS_PROMPT = """### ROLE
You are a visual curator picking stock {media_label} for a blog article.

### CONTEXT
The article is about "{keyword}".

### TASK
For each article heading below, write ONE simple, purely visual search term
that will find a high-quality {media_label} on a stock site.

<headings>
{headings}
</headings>

### RULES
- ALWAYS combine the MAIN TOPIC with the HEADING context.
  Example: topic "Dog Health" + heading "Training" -> "dog training session", NOT just "training".
- NO abstract concepts. Concrete nouns and scenes only.
- 3 to 5 words per term.
- Use the headings EXACTLY as given as the keys of the "terms" object.

### OUTPUT FORMAT
{response_schema}"""


# =============================================================================
# INTERNAL LINKING PROMPTS
# =============================================================================

INTERNAL_LINKS_PROMPT = """### ROLE
You are an expert SEO editor. You will receive an article draft and a list of
related articles ("candidates") from the same website. Find the best places
to insert internal links to those candidates.

### RULES
1. Select up to {target_link_count} insertion points.
2. Prefer placements in the first 40% of the article.
3. Links must be contextually relevant.
4. ONLY select text from body paragraphs. NEVER select text from a heading
   (any line starting with one or more # symbols). If a phrase appears in both
   a heading and body text, use the body text.
5. Do NOT place links in the conclusion section.
6. Use each target slug AT MOST ONCE.
7. Write natural, descriptive anchor text. Avoid "click here", "read this" and
   exact-match keyword stuffing.
8. Link format: plain markdown [anchor text](/slug) with a relative path
   starting with /. No HTML, no rel or target attributes.

### SNIPPET RULES (CRITICAL)
- "original_snippet" MUST be copied WORD-FOR-WORD from the article (5-15 words).
  Do not invent, paraphrase, or fix typos. If no exact text fits a candidate, skip it.
- "rewritten_snippet" MUST be the SAME text with one markdown link added
  around part of it. Do not add, remove or change any other words.

Correct:
  article text: "Many pet owners struggle with dirty toys every week"
  original_snippet: "pet owners struggle with dirty toys"
  rewritten_snippet: "pet owners struggle with [dirty toys](/pet-toy-hygiene)"

Incorrect:
  original_snippet: "pet hygiene problems"  (not in the article)
  rewritten_snippet: "many owners struggle with [dirty toys](/pet-toy-hygiene) daily"  (words changed)

### CANDIDATES
{candidates}

### ARTICLE
<article>
{article}
</article>

### OUTPUT FORMAT
{response_schema}"""


# =============================================================================
# NICHE DETECTION PROMPTS
# =============================================================================

DETECT_NICHE_PROMPT = """You are an SEO taxonomy expert.
Analyze this keyword and identify its SPECIFIC sub-niche or industry.

Keyword: "{keyword}"

Rules:
1. Be GRANULAR. Don't say "Pets", say "Dog Training" or "Aquarium Maintenance".
2. Don't say "Finance", say "Cryptocurrency Trading" or "Retirement Planning".
3. Return ONLY the niche name. No citations. No pleasantries.

Niche:"""


AUTHORITY_DOMAINS_PROMPT = """You are a high-end SEO link builder.
List 8-12 highly authoritative, trusted websites specifically for the niche: "{niche}".

Criteria:
- Must be REAL, active, high-authority domains.
- Include a mix of broad authorities, niche-specific experts, and
  government/edu sources where relevant.
- EXCLUDE forums, social media and generic content farms.
- Return ONLY the clean domain names (e.g., "example.com"), one per line. No bullets.

Domains:"""
