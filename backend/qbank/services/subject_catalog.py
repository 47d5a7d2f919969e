"""
Nursing exam subject catalog.

Subject areas per exam with the standing question-count targets used to
seed the subject tracker. Based on the NCLEX-RN test plan, ATI TEAS 7 and
HESI A2 exam structure. Sort order defines processing priority.
"""

from typing import Dict, List, Optional

# (category, subject, target_count, topics)
SUBJECT_CATALOG = [
    # NCLEX (7,000 total)
    ("NCLEX", "Management of Care", 850, [
        "Advance Directives", "Advocacy", "Case Management", "Client Rights",
        "Collaboration with Interdisciplinary Team", "Concepts of Management",
        "Confidentiality/Information Security", "Continuity of Care",
        "Establishing Priorities", "Ethical Practice", "Informed Consent",
        "Information Technology", "Legal Rights and Responsibilities",
        "Performance Improvement (Quality Improvement)", "Referrals", "Supervision",
    ]),
    ("NCLEX", "Safety and Infection Control", 600, [
        "Accident/Error/Injury Prevention", "Emergency Response Plan",
        "Ergonomic Principles", "Handling Hazardous and Infectious Materials",
        "Home Safety", "Reporting of Incident/Event/Irregular Occurrence/Variance",
        "Safe Use of Equipment", "Security Plan",
        "Standard Precautions/Transmission-Based Precautions",
        "Use of Restraints/Safety Devices",
    ]),
    ("NCLEX", "Health Promotion and Maintenance", 850, [
        "Aging Process", "Ante/Intra/Postpartum and Newborn Care",
        "Developmental Stages and Transitions", "Disease Prevention",
        "Health Promotion Programs", "Health Screening", "High Risk Behaviors",
        "Lifestyle Choices", "Self-Care", "Techniques of Physical Assessment",
    ]),
    ("NCLEX", "Psychosocial Integrity", 850, [
        "Abuse/Neglect", "Behavioral Interventions", "Chemical and Other Dependencies",
        "Coping Mechanisms", "Crisis Intervention", "Cultural Awareness/Diversity",
        "End of Life Care", "Family Dynamics", "Grief and Loss", "Mental Health Concepts",
        "Religious and Spiritual Influences on Health", "Sensory/Perceptual Alterations",
        "Stress Management", "Support Systems", "Therapeutic Communications",
        "Therapeutic Environment",
    ]),
    ("NCLEX", "Basic Care and Comfort", 600, [
        "Assistive Devices", "Elimination", "Mobility/Immobility",
        "Non-Pharmacological Comfort Interventions", "Nutrition and Oral Hydration",
        "Palliative/Comfort Care", "Personal Hygiene", "Rest and Sleep",
    ]),
    ("NCLEX", "Pharmacological and Parenteral Therapies", 1100, [
        "Adverse Effects/Contraindications/Side Effects/Interactions",
        "Blood and Blood Products", "Central Venous Access Devices",
        "Dosage Calculation", "Expected Actions/Outcomes", "Medication Administration",
        "Pharmacological Pain Management", "Parenteral/Intravenous Therapies",
        "Total Parenteral Nutrition",
    ]),
    ("NCLEX", "Reduction of Risk Potential", 650, [
        "Changes/Abnormalities in Vital Signs", "Diagnostic Tests", "Laboratory Values",
        "Potential for Alterations in Body Systems",
        "Potential for Complications of Diagnostic Tests/Treatments/Procedures",
        "Potential for Complications from Surgical Procedures and Health Alterations",
        "System Specific Assessments", "Therapeutic Procedures",
    ]),
    ("NCLEX", "Physiological Adaptation", 1500, [
        "Alterations in Body Systems", "Fluid and Electrolyte Imbalances", "Hemodynamics",
        "Illness Management", "Medical Emergencies", "Pathophysiology", "Radiation Therapy",
        "Unexpected Response to Therapies", "Cardiovascular Disorders",
        "Respiratory Disorders", "Neurological Disorders", "Gastrointestinal Disorders",
        "Renal and Urological Disorders", "Endocrine Disorders",
        "Musculoskeletal Disorders", "Hematologic Disorders", "Immunologic Disorders",
    ]),

    # TEAS (2,500 total)
    ("TEAS", "Reading", 600, [
        "Key Ideas and Details", "Craft and Structure",
        "Integration of Knowledge and Ideas", "Main Ideas and Supporting Details",
        "Inferences and Conclusions", "Author's Purpose and Point of View",
        "Text Structure", "Word Meanings and Context Clues", "Evaluating Arguments",
        "Compare and Contrast Texts",
    ]),
    ("TEAS", "Mathematics", 700, [
        "Numbers and Algebra", "Arithmetic Operations",
        "Fractions, Decimals, and Percentages", "Ratios and Proportions",
        "Algebraic Expressions and Equations", "Measurements and Data",
        "Unit Conversions", "Data Interpretation", "Statistics and Probability",
        "Geometric Principles",
    ]),
    ("TEAS", "Science", 850, [
        "Human Anatomy and Physiology", "Cardiovascular System", "Respiratory System",
        "Nervous System", "Digestive System", "Endocrine System",
        "Musculoskeletal System", "Integumentary System", "Life and Physical Sciences",
        "Cell Structure and Function", "Genetics and DNA", "Scientific Reasoning",
        "Chemistry Basics", "Atoms and Molecules", "Chemical Reactions",
        "Properties of Matter",
    ]),
    ("TEAS", "English and Language Usage", 350, [
        "Conventions of Standard English", "Grammar and Sentence Structure",
        "Punctuation", "Spelling", "Capitalization", "Knowledge of Language",
        "Vocabulary Acquisition", "Using Context Clues", "Word Roots and Affixes",
    ]),

    # HESI (3,000 total)
    ("HESI", "Mathematics", 500, [
        "Basic Operations", "Fractions and Decimals", "Percentages",
        "Ratios and Proportions", "Measurement Conversions", "Dosage Calculations",
        "Household Measures", "Metric Conversions", "Roman Numerals",
    ]),
    ("HESI", "Reading Comprehension", 400, [
        "Main Ideas", "Supporting Details", "Inferences", "Author's Purpose",
        "Fact vs Opinion", "Following Directions", "Context Clues", "Drawing Conclusions",
    ]),
    ("HESI", "Vocabulary", 300, [
        "Medical Terminology", "Word Roots", "Prefixes and Suffixes",
        "Context in Healthcare", "Synonyms and Antonyms",
    ]),
    ("HESI", "Grammar", 300, [
        "Parts of Speech", "Sentence Structure", "Subject-Verb Agreement",
        "Verb Tenses", "Pronouns", "Punctuation", "Common Grammar Errors",
    ]),
    ("HESI", "Biology", 450, [
        "Cell Structure and Function", "Cellular Respiration", "Photosynthesis",
        "DNA and RNA", "Genetics and Heredity", "Biological Macromolecules", "Metabolism",
    ]),
    ("HESI", "Chemistry", 350, [
        "Atomic Structure", "Periodic Table", "Chemical Bonds", "Chemical Reactions",
        "Acids and Bases", "Solutions and Concentrations", "States of Matter",
    ]),
    ("HESI", "Anatomy and Physiology", 700, [
        "Anatomical Terminology", "Body Organization", "Cardiovascular System",
        "Respiratory System", "Nervous System", "Digestive System", "Endocrine System",
        "Musculoskeletal System", "Integumentary System", "Urinary System",
        "Reproductive System", "Lymphatic and Immune System",
    ]),
]


def get_seed_rows() -> List[Dict]:
    """Rows for the subject progress table, in priority order."""
    return [
        {
            "category": category,
            "subject": subject,
            "target_count": target,
            "sort_order": index,
        }
        for index, (category, subject, target, _topics) in enumerate(SUBJECT_CATALOG, start=1)
    ]


def get_subject_topics(category: str, subject: str) -> List[str]:
    for cat, name, _target, topics in SUBJECT_CATALOG:
        if cat == category and name == subject:
            return list(topics)
    return []


def get_total_target(category: Optional[str] = None) -> int:
    return sum(
        target for cat, _name, target, _topics in SUBJECT_CATALOG
        if category is None or cat == category
    )
