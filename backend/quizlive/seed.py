from quizlive import db
from quizlive.models import Quiz, Question, QuestionOption
from quizlive.services.games.types import MULTIPLE_CHOICE, TRUE_FALSE

DEMO_QUESTIONS = [
    {
        'text': 'Warm up: which of these is a fruit?',
        'type': MULTIPLE_CHOICE,
        'is_warmup': True,
        'options': [('Carrot', False), ('Apple', True), ('Potato', False), ('Onion', False)],
    },
    {
        'text': 'What is the capital of France?',
        'type': MULTIPLE_CHOICE,
        'options': [('Berlin', False), ('Madrid', False), ('Paris', True), ('Rome', False)],
    },
    {
        'text': 'The Pacific is the largest ocean on Earth.',
        'type': TRUE_FALSE,
        'time_limit_override': 10,
        'options': [('True', True), ('False', False)],
    },
]


def seed_demo_quiz(title='Demo Quiz', questions=None, **settings):
    """Insert a quiz with ordered questions and options and return it.

    ``questions`` follows the shape of DEMO_QUESTIONS; ``settings`` may set
    the quiz's time_limit, speed_scoring, points_per_question, auto_advance.
    """
    quiz = Quiz(title=title, **settings)
    db.session.add(quiz)
    for q_index, spec in enumerate(questions if questions is not None else DEMO_QUESTIONS):
        question = Question(
            quiz=quiz,
            type=spec.get('type', MULTIPLE_CHOICE),
            question_text=spec['text'],
            order_index=q_index,
            is_warmup=spec.get('is_warmup', False),
            time_limit_override=spec.get('time_limit_override'),
        )
        db.session.add(question)
        for o_index, (text, is_correct) in enumerate(spec['options']):
            db.session.add(QuestionOption(
                question=question,
                option_text=text,
                is_correct=is_correct,
                order_index=o_index,
            ))
    db.session.commit()
    return quiz
