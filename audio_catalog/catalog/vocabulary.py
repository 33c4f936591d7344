"""
Built-in tag suggestions offered when editing instruments and mood.

CatalogStore.tag_vocabulary() merges these with the values already used
in the catalog.
"""

INSTRUMENT_TAGS = (
    # Strings
    "Acoustic Guitar", "Electric Guitar", "Bass Guitar", "Violin", "Viola", "Cello",
    "Double Bass", "Harp", "Banjo", "Mandolin", "Ukulele",
    # Keys
    "Piano", "Synthesizer", "Organ", "Electric Piano", "Harpsichord", "Accordion", "Keytar",
    # Winds
    "Flute", "Clarinet", "Saxophone", "Trumpet", "Trombone", "French Horn", "Tuba",
    "Oboe", "Bassoon",
    # Percussion
    "Drums", "Drum Kit", "Percussion", "Congas", "Bongos", "Tambourine", "Triangle",
    "Maracas", "Timpani", "Xylophone", "Vibraphone", "Marimba",
    # Electronic
    "DJ", "Turntables", "Sampler", "Drum Machine", "Vocoder", "Theremin", "Beatbox",
    "Looper", "Synth Bass", "Lead Synth", "Pad Synth",
)

MOOD_TAGS = (
    "Happy", "Uplifting", "Joyful", "Upbeat", "Cheerful", "Playful", "Carefree",
    "Optimistic", "Bright", "Empowering",
    "Calm", "Peaceful", "Relaxing", "Tranquil", "Soothing", "Dreamy", "Ethereal",
    "Ambient", "Meditative", "Gentle",
    "Energetic", "Exciting", "Dynamic", "Powerful", "Intense", "Driving", "Bold",
    "Anthemic", "Epic",
    "Sad", "Melancholic", "Somber", "Dark", "Moody", "Tense", "Anxious", "Angry",
    "Aggressive", "Haunting",
    "Nostalgic", "Romantic", "Dramatic", "Mysterious", "Quirky", "Cinematic",
    "Inspirational", "Suspenseful", "Whimsical", "Emotional",
)
