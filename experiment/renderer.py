import pygame
from typing import List, Optional, Tuple


class Renderer:
    """
    Only draws. Does not time anything, does not judge responses.
    """

    def __init__(self, screen: pygame.Surface):
        self.screen = screen
        self.w, self.h = screen.get_size()

        self.font_huge = pygame.font.SysFont(None, 220)
        self.font_big = pygame.font.SysFont(None, 72)
        self.font_mid = pygame.font.SysFont(None, 42)
        self.font_small = pygame.font.SysFont(None, 30)

        self.center = (self.w // 2, self.h // 2)

        self.bg_color = (15, 15, 20)
        self.ui_color = (230, 230, 230)
        self.muted_color = (150, 150, 160)
        self.correct_color = (16, 185, 129)
        self.wrong_color = (239, 68, 68)

    # -----------------------
    # screen
    # -----------------------

    def clear(self) -> None:
        self.screen.fill(self.bg_color)

    def present(self) -> None:
        pygame.display.flip()

    # -----------------------
    # trial elements
    # -----------------------

    def feedback_color(self, is_correct: Optional[bool]) -> Tuple[int, int, int]:
        if is_correct is None:
            return self.ui_color
        return self.correct_color if is_correct else self.wrong_color

    def draw_digit(self, value: int, color: Optional[Tuple[int, int, int]] = None) -> None:
        surf = self.font_huge.render(str(value), True, color or self.ui_color)
        self.screen.blit(surf, surf.get_rect(center=self.center))

    def draw_audio_glyph(self, color: Optional[Tuple[int, int, int]] = None) -> None:
        # a quaver: head + stem + flag
        color = color or self.ui_color
        cx, cy = self.center
        r = max(18, self.h // 24)
        pygame.draw.circle(self.screen, color, (cx - r, cy + r * 2), r)
        pygame.draw.line(self.screen, color, (cx, cy + r * 2), (cx, cy - r * 3), max(4, r // 4))
        pygame.draw.line(self.screen, color, (cx, cy - r * 3), (cx + r * 2, cy - r), max(4, r // 4))

    def draw_fixation(self) -> None:
        cx, cy = self.center
        arm = max(14, self.h // 30)
        width = max(3, arm // 5)
        pygame.draw.line(self.screen, self.ui_color, (cx - arm, cy), (cx + arm, cy), width)
        pygame.draw.line(self.screen, self.ui_color, (cx, cy - arm), (cx, cy + arm), width)

    def draw_countdown(self, remaining: int) -> None:
        surf = self.font_huge.render(str(remaining), True, self.ui_color)
        self.screen.blit(surf, surf.get_rect(center=self.center))

    def draw_progress(self, current: int, total: int) -> None:
        surf = self.font_small.render(f"Trial {current} of {total}", True, self.muted_color)
        self.screen.blit(surf, surf.get_rect(center=(self.center[0], int(self.h * 0.9))))

    # -----------------------
    # prompts
    # -----------------------

    def draw_message(self, title: str, lines: List[str], hint: str = "") -> None:
        title_surf = self.font_big.render(title, True, self.ui_color)
        self.screen.blit(title_surf, title_surf.get_rect(center=(self.center[0], int(self.h * 0.2))))

        y = int(self.h * 0.32)
        for line in lines:
            surf = self.font_small.render(line, True, self.ui_color)
            self.screen.blit(surf, surf.get_rect(center=(self.center[0], y)))
            y += 38

        if hint:
            hint_surf = self.font_mid.render(hint, True, self.muted_color)
            self.screen.blit(hint_surf, hint_surf.get_rect(center=(self.center[0], int(self.h * 0.88))))
